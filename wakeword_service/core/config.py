import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, cast

import dotenv
import yaml


@dataclass(frozen=True, slots=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8765


@dataclass(frozen=True, slots=True)
class AudioConfig:
    samplerate: int = 16000
    channels: int = 1
    blocksize: int = 1280
    dtype: str = "int16"
    device: int | str | None = None


@dataclass(frozen=True, slots=True)
class SessionConfig:
    poll_interval_seconds: float = 0.1
    stop_timeout_seconds: float = 2.0
    reader_max_frames: int = 64


@dataclass(frozen=True, slots=True)
class UdpConfig:
    wrap_wav: bool = True
    max_datagram_bytes: int = 8192
    error_streak_threshold: int = 25


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    json_output: bool = False
    rotate_max_bytes: int = 5_000_000
    rotate_backup_count: int = 3


@dataclass(frozen=True, slots=True)
class PathsConfig:
    log_dir: Path = field(default_factory=lambda: Path("logs"))


@dataclass(frozen=True, slots=True)
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    udp: UdpConfig = field(default_factory=UdpConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    config_path: Path | None = None


class ConfigLoader:
    """Builds AppConfig from `.env`, process env vars and the YAML file at CONFIG_PATH."""

    def __init__(self, env_file: Path | None = None) -> None:
        self.env_file = env_file

    def load(self) -> AppConfig:
        env_file = self.env_file or Path(__file__).resolve().parents[2] / ".env"
        dotenv.load_dotenv(env_file)

        config_path: Path | None = None
        raw: dict[str, Any] = {}
        config_path_env = os.getenv("CONFIG_PATH")
        if config_path_env:
            config_path = Path(config_path_env).expanduser()
            raw = self._load_yaml(config_path)

        log_dir = Path(os.getenv("LOG_DIR") or "logs").expanduser()

        return AppConfig(
            server=self._load_server(raw),
            audio=self._load_audio(raw),
            session=self._load_session(raw),
            udp=self._load_udp(raw),
            logging=self._load_logging(raw),
            paths=PathsConfig(log_dir=log_dir),
            config_path=config_path,
        )

    def _load_server(self, raw: Mapping[str, Any]) -> ServerConfig:
        server = self._get_optional_mapping(raw, "server")
        defaults = ServerConfig()
        return ServerConfig(
            host=str(os.getenv("SERVER_HOST") or server.get("host", defaults.host)),
            port=int(os.getenv("SERVER_PORT") or server.get("port", defaults.port)),
        )

    def _load_audio(self, raw: Mapping[str, Any]) -> AudioConfig:
        audio = self._get_optional_mapping(raw, "audio")
        defaults = AudioConfig()
        device = audio.get("device")
        if device is not None and not isinstance(device, (int, str)):
            raise ValueError("audio.device must be an index or a device name")
        return AudioConfig(
            samplerate=int(audio.get("samplerate", defaults.samplerate)),
            channels=int(audio.get("channels", defaults.channels)),
            blocksize=int(audio.get("blocksize", defaults.blocksize)),
            dtype=str(audio.get("dtype", defaults.dtype)),
            device=device,
        )

    def _load_session(self, raw: Mapping[str, Any]) -> SessionConfig:
        session = self._get_optional_mapping(raw, "session")
        defaults = SessionConfig()
        poll = float(session.get("poll_interval_seconds", defaults.poll_interval_seconds))
        stop_timeout = float(session.get("stop_timeout_seconds", defaults.stop_timeout_seconds))
        if poll <= 0:
            raise ValueError("session.poll_interval_seconds must be positive")
        if stop_timeout < poll:
            raise ValueError("session.stop_timeout_seconds must not be shorter than the poll interval")
        return SessionConfig(
            poll_interval_seconds=poll,
            stop_timeout_seconds=stop_timeout,
            reader_max_frames=int(session.get("reader_max_frames", defaults.reader_max_frames)),
        )

    def _load_udp(self, raw: Mapping[str, Any]) -> UdpConfig:
        detectors = self._get_optional_mapping(raw, "detectors")
        udp = self._get_optional_mapping(detectors, "network")
        defaults = UdpConfig()
        max_datagram = int(udp.get("max_datagram_bytes", defaults.max_datagram_bytes))
        if not 64 <= max_datagram <= 65507:
            raise ValueError("detectors.network.max_datagram_bytes must be within 64..65507")
        return UdpConfig(
            wrap_wav=bool(udp.get("wrap_wav", defaults.wrap_wav)),
            max_datagram_bytes=max_datagram,
            error_streak_threshold=int(udp.get("error_streak_threshold", defaults.error_streak_threshold)),
        )

    def _load_logging(self, raw: Mapping[str, Any]) -> LoggingConfig:
        logging_raw = self._get_optional_mapping(raw, "logging")
        defaults = LoggingConfig()
        return LoggingConfig(
            level=str(os.getenv("LOG_LEVEL") or logging_raw.get("level", defaults.level)).upper(),
            format=str(logging_raw.get("format", defaults.format)),
            json_output=bool(logging_raw.get("json_output", defaults.json_output)),
            rotate_max_bytes=int(logging_raw.get("rotate_max_bytes", defaults.rotate_max_bytes)),
            rotate_backup_count=int(logging_raw.get("rotate_backup_count", defaults.rotate_backup_count)),
        )

    @staticmethod
    def _load_yaml(path: Path) -> dict[str, Any]:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError("Config root must be a mapping")
        return cast(dict[str, Any], data)

    @staticmethod
    def _get_optional_mapping(raw: Mapping[str, Any], key: str) -> dict[str, Any]:
        v = raw.get(key, {})
        if v is None:
            return {}
        if not isinstance(v, Mapping):
            raise ValueError(f"Section '{key}' must be a mapping")
        return dict(cast(Mapping[str, Any], v))


def load_config(env_file: Path | None = None) -> AppConfig:
    return ConfigLoader(env_file=env_file).load()

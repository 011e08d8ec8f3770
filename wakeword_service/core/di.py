from functools import lru_cache
from typing import TYPE_CHECKING

from wakeword_service.adapters.transport.udp import UdpTransportFactory
from wakeword_service.core.config import AppConfig, load_config
from wakeword_service.domain.models import AudioFormat
from wakeword_service.services.binding import ServiceBinder
from wakeword_service.services.controller import ServiceController
from wakeword_service.services.dispatch import CommandDispatcher
from wakeword_service.services.registry import DetectorRegistry, default_registry

if TYPE_CHECKING:
    from wakeword_service.adapters.audio.sounddevice_stream import SoundDeviceAudioStreamAdapter


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get singleton AppConfig instance."""
    return load_config()


@lru_cache(maxsize=1)
def get_audio_format() -> AudioFormat:
    cfg = get_config()
    return AudioFormat(
        sample_rate=cfg.audio.samplerate,
        channels=cfg.audio.channels,
        blocksize=cfg.audio.blocksize,
        dtype=cfg.audio.dtype,  # type: ignore[arg-type]
    )


@lru_cache(maxsize=1)
def get_audio_stream() -> "SoundDeviceAudioStreamAdapter":
    """Get singleton microphone stream adapter."""
    # sounddevice loads PortAudio on import
    from wakeword_service.adapters.audio.sounddevice_stream import SoundDeviceAudioStreamAdapter

    return SoundDeviceAudioStreamAdapter(audio_format=get_audio_format(), device=get_config().audio.device)


@lru_cache(maxsize=1)
def get_detector_registry() -> DetectorRegistry:
    cfg = get_config()
    udp = UdpTransportFactory(
        wrap_wav=cfg.udp.wrap_wav,
        max_datagram_bytes=cfg.udp.max_datagram_bytes,
        error_streak_threshold=cfg.udp.error_streak_threshold,
    )
    return default_registry(udp)


@lru_cache(maxsize=1)
def get_controller() -> ServiceController:
    """Get the controller owned by this process."""
    cfg = get_config()
    return ServiceController(
        stream=get_audio_stream(),
        registry=get_detector_registry(),
        poll_interval=cfg.session.poll_interval_seconds,
        stop_timeout=cfg.session.stop_timeout_seconds,
        reader_max_frames=cfg.session.reader_max_frames,
    )


@lru_cache(maxsize=1)
def get_binder() -> ServiceBinder:
    return ServiceBinder(controller=get_controller())


@lru_cache(maxsize=1)
def get_dispatcher() -> CommandDispatcher:
    return CommandDispatcher(get_controller())


def shutdown_services() -> None:
    """Stop the session and the microphone if this process ever created them."""
    if get_controller.cache_info().currsize:
        get_controller().stop()
    if get_audio_stream.cache_info().currsize:
        get_audio_stream().stop()

"""
Target registry for OTA device families.

Provides a single source of truth for:
- Connection parameters (port, socket options)
- Chunking and acknowledgment mode
- Per-phase ack deadlines
- Friendly aliases accepted on the command line

Usage:
    from ota_flasher.targets import list_targets, get_profile

    for profile in list_targets():
        print(profile.name, profile.port)

    profile = get_profile("esp32")
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple, Union

from ota_flasher.protocol.base import OtaTarget
from ota_flasher.protocol import esp32_chunked, stm32_stream


@dataclass(frozen=True)
class TargetProfile:
    """Static description of one device family's OTA protocol."""
    target: OtaTarget
    name: str
    port: int
    chunk_size: int
    ack_mode: str
    description: str
    timeouts: Tuple[Tuple[str, float], ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict:
        """Convert to JSON-serializable dict."""
        return {
            "target": self.target.value,
            "name": self.name,
            "port": self.port,
            "chunk_size": self.chunk_size,
            "ack_mode": self.ack_mode,
            "description": self.description,
            "timeouts": dict(self.timeouts),
        }


TARGET_PROFILES: Dict[OtaTarget, TargetProfile] = {
    OtaTarget.STM32: TargetProfile(
        target=OtaTarget.STM32,
        name="STM32",
        port=stm32_stream.STM32_PORT,
        chunk_size=stm32_stream.STM32_STREAM_CHUNK_SIZE,
        ack_mode="stream",
        description=(
            f"Erase, then pipelined stream to 0x{stm32_stream.STM32_BASE_ADDRESS:08X}; "
            "single ack after the body"
        ),
        timeouts=(
            ("init", stm32_stream.STM32_INIT_TIMEOUT),
            ("erase", stm32_stream.STM32_ERASE_TIMEOUT),
            ("header", stm32_stream.STM32_HEADER_TIMEOUT),
            ("completion", stm32_stream.STM32_COMPLETION_TIMEOUT),
            ("run", stm32_stream.STM32_RUN_TIMEOUT),
        ),
    ),
    OtaTarget.ESP32: TargetProfile(
        target=OtaTarget.ESP32,
        name="ESP32",
        port=esp32_chunked.ESP32_PORT,
        chunk_size=esp32_chunked.ESP32_CHUNK_SIZE,
        ack_mode="per-chunk",
        description="Synchronous writes, one ack per chunk",
        timeouts=(("ack", esp32_chunked.ESP32_ACK_TIMEOUT),),
    ),
}

# User-facing names accepted for each target
TARGET_ALIASES: Dict[str, OtaTarget] = {
    "stm32": OtaTarget.STM32,
    "stm": OtaTarget.STM32,
    "a": OtaTarget.STM32,
    "target_a": OtaTarget.STM32,
    "esp32": OtaTarget.ESP32,
    "esp": OtaTarget.ESP32,
    "b": OtaTarget.ESP32,
    "target_b": OtaTarget.ESP32,
}


def list_targets() -> List[TargetProfile]:
    """Return all target profiles in declaration order."""
    return list(TARGET_PROFILES.values())


def get_profile(target: Union[OtaTarget, str]) -> TargetProfile:
    """
    Look up a profile by enum member or alias.

    Raises:
        ValueError: If the target is unknown
    """
    if not isinstance(target, OtaTarget):
        key = str(target).strip().lower().replace("-", "_")
        if key not in TARGET_ALIASES:
            raise ValueError(
                f"Unknown target '{target}'. Valid targets: {', '.join(sorted(TARGET_ALIASES))}"
            )
        target = TARGET_ALIASES[key]
    return TARGET_PROFILES[target]

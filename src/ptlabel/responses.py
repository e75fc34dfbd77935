"""
Status Reply Parser for P-touch Printers.

The printer answers ESC i S with a fixed 32-byte status block:
    Offset  Field
    0       Print head mark (0x80)
    1       Size (0x20)
    2       Brother code ('B')
    3       Series code ('0')
    4       Model code
    5       Country code
    6-7     Reserved
    8       Error information 1 (bitfield)
    9       Error information 2 (bitfield)
    10      Media width (mm)
    11      Media type
    12-14   Colors / fonts (unused)
    15      Mode
    16      Density (unused)
    17      Media length
    18      Status type
    19      Phase type
    20-21   Phase number
    22      Notification number
    23      Expansion area
    24      Tape color
    25      Text color
    26-31   Hardware settings / reserved
"""

from dataclasses import dataclass, field


STATUS_LENGTH = 32
STATUS_HEADER = bytes([0x80, 0x20, 0x42])

ERROR1_BITS = {
    0: "no media",
    1: "end of media",
    2: "cutter jam",
    3: "weak batteries",
    4: "printer in use",
    5: "printer turned off",
    6: "high-voltage adapter",
    7: "fan motor error",
}

ERROR2_BITS = {
    0: "replace media",
    1: "expansion buffer full",
    2: "communication error",
    3: "communication buffer full",
    4: "cover open",
    5: "cancel key",
    6: "media cannot be fed",
    7: "system error",
}

MODEL_NAMES = {
    0x64: "PT-H500",
    0x65: "PT-E500",
    0x66: "PT-E550W",
    0x67: "PT-P700",
    0x68: "PT-P750W",
}


def _bit_names(value: int, mapping: dict[int, str]) -> list[str]:
    return [name for bit, name in mapping.items() if value & (1 << bit)]


@dataclass(frozen=True)
class DeviceStatus:
    """
    Snapshot of the printer state taken from one status reply.

    A model of 0 means no printer answered; a tape width of 0 means no
    tape is loaded.
    """

    model: int = 0
    tape_width_mm: int = 0
    error1: int = 0
    error2: int = 0
    media_type: int = 0
    mode: int = 0
    status_type: int = 0
    phase_type: int = 0
    tape_color: int = 0
    text_color: int = 0
    raw_data: bytes = field(default=b"", repr=False)

    @classmethod
    def parse(cls, data: bytes) -> "DeviceStatus":
        """
        Parse a raw status reply.

        Raises:
            ValueError: If the reply is not a well-formed status block
        """
        if len(data) != STATUS_LENGTH:
            raise ValueError(f"Status reply must be {STATUS_LENGTH} bytes, got {len(data)}")
        if data[:3] != STATUS_HEADER:
            raise ValueError(f"Unexpected status header: {data[:3].hex()}")

        return cls(
            model=data[4],
            tape_width_mm=data[10],
            error1=data[8],
            error2=data[9],
            media_type=data[11],
            mode=data[15],
            status_type=data[18],
            phase_type=data[19],
            tape_color=data[24],
            text_color=data[25],
            raw_data=bytes(data),
        )

    @property
    def has_fault(self) -> bool:
        return self.error1 != 0 or self.error2 != 0

    @property
    def has_tape(self) -> bool:
        return self.tape_width_mm != 0

    @property
    def model_name(self) -> str:
        if self.model == 0:
            return "unknown"
        return MODEL_NAMES.get(self.model, f"model 0x{self.model:02X}")

    def error_descriptions(self) -> dict[str, list[str]]:
        """Names of the bits set in each error byte."""
        return {
            "error1": _bit_names(self.error1, ERROR1_BITS),
            "error2": _bit_names(self.error2, ERROR2_BITS),
        }

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            "model_name": self.model_name,
            "tape_width_mm": self.tape_width_mm,
            "error1": self.error1,
            "error2": self.error2,
            "media_type": self.media_type,
            "mode": self.mode,
            "status_type": self.status_type,
            "phase_type": self.phase_type,
            "tape_color": self.tape_color,
            "text_color": self.text_color,
        }

    def __str__(self) -> str:
        faults = self.error_descriptions()
        fault_text = ", ".join(faults["error1"] + faults["error2"]) or "none"
        return (
            f"DeviceStatus(\n"
            f"  model={self.model_name},\n"
            f"  tape_width={self.tape_width_mm} mm,\n"
            f"  faults={fault_text}\n"
            f")"
        )

"""Decoder: 16-bit instruction words to operation keys.

Each fetched word is split into four nibbles and matched against the base
instruction set. The result is a closed set of operation keys that the
registry executes, so every opcode can be tested on its own.

Architecture:
    word -> nibbles (op1, op2, op3, op4) -> (operation_key, params) -> Registry

Encodings outside the base set decode to OP_NOP with valid=False. They are
never an error; later instruction-set extensions reuse those encodings.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional, Set, Tuple


@dataclass
class DecodeResult:
    """Result of instruction decode operation.

    Attributes:
        key: Operation key (e.g., "OP_ADD_REG")
        params: Operand fields used by the operation
        valid: Whether the word is part of the base instruction set
        error: Explanation when valid is False
        raw: Original 16-bit instruction word
    """
    key: str
    params: Dict[str, int]
    valid: bool
    error: Optional[str] = None
    raw: int = 0


def nibbles(word: int) -> Tuple[int, int, int, int]:
    """Split a 16-bit word into four nibbles, most significant first."""
    return (
        (word & 0xF000) >> 12,
        (word & 0x0F00) >> 8,
        (word & 0x00F0) >> 4,
        word & 0x000F,
    )


# Arithmetic/logic group 8xyN, keyed by the last nibble
_ALU_KEYS: Dict[int, str] = {
    0x0: "OP_LD_REG",
    0x1: "OP_OR",
    0x2: "OP_AND",
    0x3: "OP_XOR",
    0x4: "OP_ADD_REG",
    0x5: "OP_SUB",
    0x6: "OP_SHR",
    0x7: "OP_SUBN",
    0xE: "OP_SHL",
}

# Fx group, keyed by the low byte
_MISC_KEYS: Dict[int, str] = {
    0x07: "OP_LD_VX_DT",
    0x0A: "OP_LD_VX_K",
    0x15: "OP_LD_DT_VX",
    0x18: "OP_LD_ST_VX",
    0x1E: "OP_ADD_I",
    0x29: "OP_LD_F",
    0x33: "OP_LD_B",
    0x55: "OP_LD_MEM_VX",
    0x65: "OP_LD_VX_MEM",
}


class Decoder:
    """Nibble-pattern instruction decoder.

    Attributes:
        VALID_KEYS: Every key the decoder can emit
    """

    VALID_KEYS: Set[str] = {
        "OP_CLS",
        "OP_RET",
        "OP_JP",
        "OP_CALL",
        "OP_SE_IMM",
        "OP_SNE_IMM",
        "OP_SE_REG",
        "OP_LD_IMM",
        "OP_ADD_IMM",
        "OP_SNE_REG",
        "OP_LD_I",
        "OP_JP_V0",
        "OP_RND",
        "OP_DRW",
        "OP_SKP",
        "OP_SKNP",
        "OP_NOP",
    } | set(_ALU_KEYS.values()) | set(_MISC_KEYS.values())

    def decode(self, word: int) -> DecodeResult:
        """Decode an instruction word to operation key and parameters.

        Args:
            word: 16-bit instruction (big-endian fetch of two bytes)

        Returns:
            DecodeResult with operation key and parameters
        """
        word &= 0xFFFF
        op1, x, y, n = nibbles(word)
        nnn = word & 0x0FFF
        kk = word & 0x00FF

        if word == 0x00E0:
            return self._ok("OP_CLS", {}, word)
        if word == 0x00EE:
            return self._ok("OP_RET", {}, word)

        if op1 == 0x1:
            return self._ok("OP_JP", {"nnn": nnn}, word)
        if op1 == 0x2:
            return self._ok("OP_CALL", {"nnn": nnn}, word)
        if op1 == 0x3:
            return self._ok("OP_SE_IMM", {"x": x, "kk": kk}, word)
        if op1 == 0x4:
            return self._ok("OP_SNE_IMM", {"x": x, "kk": kk}, word)
        if op1 == 0x5 and n == 0x0:
            return self._ok("OP_SE_REG", {"x": x, "y": y}, word)
        if op1 == 0x6:
            return self._ok("OP_LD_IMM", {"x": x, "kk": kk}, word)
        if op1 == 0x7:
            return self._ok("OP_ADD_IMM", {"x": x, "kk": kk}, word)
        if op1 == 0x8 and n in _ALU_KEYS:
            return self._ok(_ALU_KEYS[n], {"x": x, "y": y}, word)
        if op1 == 0x9 and n == 0x0:
            return self._ok("OP_SNE_REG", {"x": x, "y": y}, word)
        if op1 == 0xA:
            return self._ok("OP_LD_I", {"nnn": nnn}, word)
        if op1 == 0xB:
            return self._ok("OP_JP_V0", {"nnn": nnn}, word)
        if op1 == 0xC:
            return self._ok("OP_RND", {"x": x, "kk": kk}, word)
        if op1 == 0xD:
            return self._ok("OP_DRW", {"x": x, "y": y, "n": n}, word)
        if op1 == 0xE and kk == 0x9E:
            return self._ok("OP_SKP", {"x": x}, word)
        if op1 == 0xE and kk == 0xA1:
            return self._ok("OP_SKNP", {"x": x}, word)
        if op1 == 0xF and kk in _MISC_KEYS:
            return self._ok(_MISC_KEYS[kk], {"x": x}, word)

        return DecodeResult(
            "OP_NOP",
            {},
            False,
            error=f"Unknown opcode: 0x{word:04X}",
            raw=word,
        )

    @staticmethod
    def _ok(key: str, params: Dict[str, int], word: int) -> DecodeResult:
        return DecodeResult(key, params, True, raw=word)


# Assembly mnemonics used by traces and the CLI
_MNEMONICS: Dict[str, str] = {
    "OP_CLS": "CLS",
    "OP_RET": "RET",
    "OP_JP": "JP 0x{nnn:03X}",
    "OP_CALL": "CALL 0x{nnn:03X}",
    "OP_SE_IMM": "SE V{x:X}, 0x{kk:02X}",
    "OP_SNE_IMM": "SNE V{x:X}, 0x{kk:02X}",
    "OP_SE_REG": "SE V{x:X}, V{y:X}",
    "OP_LD_IMM": "LD V{x:X}, 0x{kk:02X}",
    "OP_ADD_IMM": "ADD V{x:X}, 0x{kk:02X}",
    "OP_LD_REG": "LD V{x:X}, V{y:X}",
    "OP_OR": "OR V{x:X}, V{y:X}",
    "OP_AND": "AND V{x:X}, V{y:X}",
    "OP_XOR": "XOR V{x:X}, V{y:X}",
    "OP_ADD_REG": "ADD V{x:X}, V{y:X}",
    "OP_SUB": "SUB V{x:X}, V{y:X}",
    "OP_SHR": "SHR V{x:X}",
    "OP_SUBN": "SUBN V{x:X}, V{y:X}",
    "OP_SHL": "SHL V{x:X}",
    "OP_SNE_REG": "SNE V{x:X}, V{y:X}",
    "OP_LD_I": "LD I, 0x{nnn:03X}",
    "OP_JP_V0": "JP V0, 0x{nnn:03X}",
    "OP_RND": "RND V{x:X}, 0x{kk:02X}",
    "OP_DRW": "DRW V{x:X}, V{y:X}, {n}",
    "OP_SKP": "SKP V{x:X}",
    "OP_SKNP": "SKNP V{x:X}",
    "OP_LD_VX_DT": "LD V{x:X}, DT",
    "OP_LD_VX_K": "LD V{x:X}, K",
    "OP_LD_DT_VX": "LD DT, V{x:X}",
    "OP_LD_ST_VX": "LD ST, V{x:X}",
    "OP_ADD_I": "ADD I, V{x:X}",
    "OP_LD_F": "LD F, V{x:X}",
    "OP_LD_B": "LD B, V{x:X}",
    "OP_LD_MEM_VX": "LD [I], V{x:X}",
    "OP_LD_VX_MEM": "LD V{x:X}, [I]",
}


def disassemble(result: DecodeResult) -> str:
    """Format a decoded instruction as assembly text.

    Unknown words are shown as a data directive, e.g. "DW 0x5FFF".
    """
    if not result.valid:
        return f"DW 0x{result.raw:04X}"
    return _MNEMONICS[result.key].format(**result.params)


def parse_program(source: str) -> bytes:
    """Parse a hex listing into ROM bytes.

    Handles:
        - Whitespace or comma separated 16-bit words ("00E0 1200")
        - Optional 0x prefixes
        - Comments (starting with ; or #)
        - Blank lines

    Args:
        source: Hex listing

    Returns:
        Big-endian program bytes

    Raises:
        ValueError: If a token is not a 4-digit hex word
    """
    program = bytearray()

    for line in source.split("\n"):
        line = re.sub(r'[;#].*$', '', line).strip()

        if not line:
            continue

        for token in re.split(r'[\s,]+', line):
            if token.lower().startswith("0x"):
                token = token[2:]
            if not re.fullmatch(r'[0-9A-Fa-f]{4}', token):
                raise ValueError(f"Invalid instruction word: {token!r}")
            word = int(token, 16)
            program.append(word >> 8)
            program.append(word & 0xFF)

    return bytes(program)

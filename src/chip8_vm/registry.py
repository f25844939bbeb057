"""CPURegistry: Verified instruction primitives for chip8-vm.

This module implements the registry pattern for instruction semantics:
each operation key emitted by the decoder maps to one frozen handler that
mutates the machine state in place.

Registry Keys:
    OP_CLS, OP_RET, OP_JP, OP_CALL, OP_JP_V0: Display clear and control flow
    OP_SE_IMM, OP_SNE_IMM, OP_SE_REG, OP_SNE_REG: Conditional skips
    OP_SKP, OP_SKNP: Keypad skips
    OP_LD_IMM, OP_ADD_IMM, OP_LD_REG: Register loads
    OP_OR, OP_AND, OP_XOR, OP_ADD_REG, OP_SUB, OP_SHR, OP_SUBN, OP_SHL: ALU
    OP_LD_I, OP_ADD_I, OP_LD_F: Index register
    OP_RND: Random byte
    OP_DRW: Sprite draw
    OP_LD_VX_DT, OP_LD_DT_VX, OP_LD_ST_VX: Timers
    OP_LD_VX_K: Wait for key
    OP_LD_B, OP_LD_MEM_VX, OP_LD_VX_MEM: Block memory
    OP_NOP: Unknown encodings

Handlers run after the CPU has already advanced PC past the instruction,
so jumps assign PC directly and skips add 2. Arithmetic wraps at 8 bits
for V registers and 16 bits for I; it never raises.
"""

import random
from typing import Any, Callable, Dict, Optional

from .state import CPUState, CPUStatus, FONT_GLYPH_SIZE, FONT_START


Handler = Callable[[CPUState, Dict[str, Any]], None]


class CPURegistry:
    """Verified registry of instruction primitives.

    The registry is frozen after initialization to ensure
    no runtime modifications can occur.

    Attributes:
        _primitives: Dictionary mapping operation keys to handler functions
        _frozen: Whether the registry is locked against modifications
        _rng: Random source for OP_RND
    """

    def __init__(self, rng: Optional[random.Random] = None):
        """Initialize registry with all instruction primitives.

        Args:
            rng: Random source for OP_RND (a fresh unseeded one if None)
        """
        self._primitives: Dict[str, Handler] = {}
        self._frozen = False
        self._rng = rng if rng is not None else random.Random()
        self._register_all_primitives()
        self.freeze()

    def _register_all_primitives(self) -> None:
        """Register all instruction primitives."""
        # Display and control flow
        self.register("OP_CLS", self._op_cls)
        self.register("OP_RET", self._op_ret)
        self.register("OP_JP", self._op_jp)
        self.register("OP_CALL", self._op_call)
        self.register("OP_JP_V0", self._op_jp_v0)

        # Skips
        self.register("OP_SE_IMM", self._op_se_imm)
        self.register("OP_SNE_IMM", self._op_sne_imm)
        self.register("OP_SE_REG", self._op_se_reg)
        self.register("OP_SNE_REG", self._op_sne_reg)
        self.register("OP_SKP", self._op_skp)
        self.register("OP_SKNP", self._op_sknp)

        # Loads
        self.register("OP_LD_IMM", self._op_ld_imm)
        self.register("OP_ADD_IMM", self._op_add_imm)
        self.register("OP_LD_REG", self._op_ld_reg)

        # ALU
        self.register("OP_OR", self._op_or)
        self.register("OP_AND", self._op_and)
        self.register("OP_XOR", self._op_xor)
        self.register("OP_ADD_REG", self._op_add_reg)
        self.register("OP_SUB", self._op_sub)
        self.register("OP_SHR", self._op_shr)
        self.register("OP_SUBN", self._op_subn)
        self.register("OP_SHL", self._op_shl)

        # Index register, random, graphics
        self.register("OP_LD_I", self._op_ld_i)
        self.register("OP_ADD_I", self._op_add_i)
        self.register("OP_LD_F", self._op_ld_f)
        self.register("OP_RND", self._op_rnd)
        self.register("OP_DRW", self._op_drw)

        # Timers and input
        self.register("OP_LD_VX_DT", self._op_ld_vx_dt)
        self.register("OP_LD_DT_VX", self._op_ld_dt_vx)
        self.register("OP_LD_ST_VX", self._op_ld_st_vx)
        self.register("OP_LD_VX_K", self._op_ld_vx_k)

        # Block memory
        self.register("OP_LD_B", self._op_ld_b)
        self.register("OP_LD_MEM_VX", self._op_ld_mem_vx)
        self.register("OP_LD_VX_MEM", self._op_ld_vx_mem)

        self.register("OP_NOP", self._op_nop)

    def register(self, key: str, handler: Handler) -> None:
        """Register a primitive operation.

        Args:
            key: Operation key (e.g., "OP_ADD_REG")
            handler: Function that takes (state, params) and mutates state

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If key already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register primitives: registry is frozen")
        if key in self._primitives:
            raise ValueError(f"Primitive already registered: {key}")
        self._primitives[key] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if registry is frozen."""
        return self._frozen

    def get_valid_keys(self) -> set:
        """Get set of all valid operation keys."""
        return set(self._primitives.keys())

    def execute(self, state: CPUState, key: str, params: Dict[str, Any]) -> CPUState:
        """Execute a registered primitive.

        Args:
            state: Current CPU state (mutated in place)
            key: Operation key
            params: Operation parameters

        Returns:
            The same state, for chaining

        Raises:
            KeyError: If key not in registry
            VMError: If the operation faults (memory or stack bounds)
        """
        if key not in self._primitives:
            raise KeyError(f"Unknown operation key: {key}")

        self._primitives[key](state, params)

        # Always increment cycle count after execution
        state.cycle_count += 1
        return state

    # =========================================================================
    # Display and Control Flow
    # =========================================================================

    def _op_cls(self, state: CPUState, params: Dict[str, Any]) -> None:
        """00E0 CLS - Clear the display."""
        state.display.clear()

    def _op_ret(self, state: CPUState, params: Dict[str, Any]) -> None:
        """00EE RET - Return from subroutine."""
        state.pc = state.pop()

    def _op_jp(self, state: CPUState, params: Dict[str, Any]) -> None:
        """1nnn JP addr."""
        state.pc = params["nnn"]

    def _op_call(self, state: CPUState, params: Dict[str, Any]) -> None:
        """2nnn CALL addr - Push the (already advanced) PC and jump."""
        state.push(state.pc)
        state.pc = params["nnn"]

    def _op_jp_v0(self, state: CPUState, params: Dict[str, Any]) -> None:
        """Bnnn JP V0, addr - Jump to nnn + V0."""
        state.pc = params["nnn"] + state.registers[0]

    # =========================================================================
    # Skips
    # =========================================================================

    def _op_se_imm(self, state: CPUState, params: Dict[str, Any]) -> None:
        """3xkk SE Vx, byte."""
        if state.registers[params["x"]] == params["kk"]:
            state.pc += 2

    def _op_sne_imm(self, state: CPUState, params: Dict[str, Any]) -> None:
        """4xkk SNE Vx, byte."""
        if state.registers[params["x"]] != params["kk"]:
            state.pc += 2

    def _op_se_reg(self, state: CPUState, params: Dict[str, Any]) -> None:
        """5xy0 SE Vx, Vy."""
        if state.registers[params["x"]] == state.registers[params["y"]]:
            state.pc += 2

    def _op_sne_reg(self, state: CPUState, params: Dict[str, Any]) -> None:
        """9xy0 SNE Vx, Vy."""
        if state.registers[params["x"]] != state.registers[params["y"]]:
            state.pc += 2

    def _op_skp(self, state: CPUState, params: Dict[str, Any]) -> None:
        """Ex9E SKP Vx - Skip if key Vx is down.

        Only the low nibble of Vx selects the key.
        """
        if state.keypad.is_down(state.registers[params["x"]] & 0xF):
            state.pc += 2

    def _op_sknp(self, state: CPUState, params: Dict[str, Any]) -> None:
        """ExA1 SKNP Vx - Skip if key Vx is up.

        Only the low nibble of Vx selects the key.
        """
        if not state.keypad.is_down(state.registers[params["x"]] & 0xF):
            state.pc += 2

    # =========================================================================
    # Loads
    # =========================================================================

    def _op_ld_imm(self, state: CPUState, params: Dict[str, Any]) -> None:
        """6xkk LD Vx, byte."""
        state.registers[params["x"]] = params["kk"]

    def _op_add_imm(self, state: CPUState, params: Dict[str, Any]) -> None:
        """7xkk ADD Vx, byte - Wrapping add, VF untouched."""
        x = params["x"]
        state.registers[x] = (state.registers[x] + params["kk"]) & 0xFF

    def _op_ld_reg(self, state: CPUState, params: Dict[str, Any]) -> None:
        """8xy0 LD Vx, Vy."""
        state.registers[params["x"]] = state.registers[params["y"]]

    # =========================================================================
    # ALU
    #
    # Add and subtract write the result first and the flag last, so the flag
    # survives when x is F. Shifts write the flag first, so the shifted value
    # survives.
    # =========================================================================

    def _op_or(self, state: CPUState, params: Dict[str, Any]) -> None:
        """8xy1 OR Vx, Vy."""
        state.registers[params["x"]] |= state.registers[params["y"]]

    def _op_and(self, state: CPUState, params: Dict[str, Any]) -> None:
        """8xy2 AND Vx, Vy."""
        state.registers[params["x"]] &= state.registers[params["y"]]

    def _op_xor(self, state: CPUState, params: Dict[str, Any]) -> None:
        """8xy3 XOR Vx, Vy."""
        state.registers[params["x"]] ^= state.registers[params["y"]]

    def _op_add_reg(self, state: CPUState, params: Dict[str, Any]) -> None:
        """8xy4 ADD Vx, Vy - VF = carry."""
        x = params["x"]
        total = state.registers[x] + state.registers[params["y"]]
        state.registers[x] = total & 0xFF
        state.set_flag(total > 0xFF)

    def _op_sub(self, state: CPUState, params: Dict[str, Any]) -> None:
        """8xy5 SUB Vx, Vy - VF = NOT borrow (Vx >= Vy)."""
        x = params["x"]
        vx = state.registers[x]
        vy = state.registers[params["y"]]
        state.registers[x] = (vx - vy) & 0xFF
        state.set_flag(vx >= vy)

    def _op_shr(self, state: CPUState, params: Dict[str, Any]) -> None:
        """8xy6 SHR Vx - VF = bit 0 shifted out. Vy is ignored."""
        x = params["x"]
        vx = state.registers[x]
        state.set_flag(vx & 0x01)
        state.registers[x] = vx >> 1

    def _op_subn(self, state: CPUState, params: Dict[str, Any]) -> None:
        """8xy7 SUBN Vx, Vy - Vx = Vy - Vx, VF = NOT borrow (Vy >= Vx)."""
        x = params["x"]
        vx = state.registers[x]
        vy = state.registers[params["y"]]
        state.registers[x] = (vy - vx) & 0xFF
        state.set_flag(vy >= vx)

    def _op_shl(self, state: CPUState, params: Dict[str, Any]) -> None:
        """8xyE SHL Vx - VF = bit 7 shifted out. Vy is ignored."""
        x = params["x"]
        vx = state.registers[x]
        state.set_flag(vx & 0x80)
        state.registers[x] = (vx << 1) & 0xFF

    # =========================================================================
    # Index Register, Random, Graphics
    # =========================================================================

    def _op_ld_i(self, state: CPUState, params: Dict[str, Any]) -> None:
        """Annn LD I, addr."""
        state.i = params["nnn"]

    def _op_add_i(self, state: CPUState, params: Dict[str, Any]) -> None:
        """Fx1E ADD I, Vx - 16-bit wrap, VF untouched."""
        state.i = (state.i + state.registers[params["x"]]) & 0xFFFF

    def _op_ld_f(self, state: CPUState, params: Dict[str, Any]) -> None:
        """Fx29 LD F, Vx - Point I at the font glyph for digit Vx."""
        state.i = FONT_START + state.registers[params["x"]] * FONT_GLYPH_SIZE

    def _op_rnd(self, state: CPUState, params: Dict[str, Any]) -> None:
        """Cxkk RND Vx, byte - Vx = random byte AND kk."""
        state.registers[params["x"]] = self._rng.getrandbits(8) & params["kk"]

    def _op_drw(self, state: CPUState, params: Dict[str, Any]) -> None:
        """Dxyn DRW Vx, Vy, n - XOR n sprite rows from [I] at (Vx, Vy).

        VF = 1 if any lit pixel was erased, else 0.
        """
        rows = state.read_block(state.i, params["n"])
        vx = state.registers[params["x"]]
        vy = state.registers[params["y"]]
        state.set_flag(state.display.draw(vx, vy, rows))

    # =========================================================================
    # Timers and Input
    # =========================================================================

    def _op_ld_vx_dt(self, state: CPUState, params: Dict[str, Any]) -> None:
        """Fx07 LD Vx, DT."""
        state.registers[params["x"]] = state.delay_timer

    def _op_ld_dt_vx(self, state: CPUState, params: Dict[str, Any]) -> None:
        """Fx15 LD DT, Vx."""
        state.delay_timer = state.registers[params["x"]]

    def _op_ld_st_vx(self, state: CPUState, params: Dict[str, Any]) -> None:
        """Fx18 LD ST, Vx."""
        state.sound_timer = state.registers[params["x"]]

    def _op_ld_vx_k(self, state: CPUState, params: Dict[str, Any]) -> None:
        """Fx0A LD Vx, K - Wait for a key press, store its index in Vx.

        With no key down the state moves to AWAITING_KEY and PC is pulled
        back onto this instruction, so the next cycle runs it again.
        """
        x = params["x"]
        key = state.keypad.first_pressed()
        if key is None:
            state.status = CPUStatus.AWAITING_KEY
            state.key_register = x
            state.pc -= 2
            return
        state.registers[x] = key
        state.status = CPUStatus.RUNNING
        state.key_register = None

    # =========================================================================
    # Block Memory
    # =========================================================================

    def _op_ld_b(self, state: CPUState, params: Dict[str, Any]) -> None:
        """Fx33 LD B, Vx - BCD of Vx to [I], [I+1], [I+2]."""
        vx = state.registers[params["x"]]
        state.write_block(state.i, bytes((vx // 100, (vx // 10) % 10, vx % 10)))

    def _op_ld_mem_vx(self, state: CPUState, params: Dict[str, Any]) -> None:
        """Fx55 LD [I], Vx - Store V0..Vx at [I]. I is unchanged."""
        x = params["x"]
        state.write_block(state.i, bytes(state.registers[:x + 1]))

    def _op_ld_vx_mem(self, state: CPUState, params: Dict[str, Any]) -> None:
        """Fx65 LD Vx, [I] - Load V0..Vx from [I]. I is unchanged."""
        x = params["x"]
        state.registers[:x + 1] = list(state.read_block(state.i, x + 1))

    # =========================================================================
    # Special Primitives
    # =========================================================================

    def _op_nop(self, state: CPUState, params: Dict[str, Any]) -> None:
        """Unrecognised encoding - no effect beyond the PC advance."""

"""Tests for the Chip8CPU fetch/decode/execute cycle."""

import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_vm import (
    Chip8CPU,
    HaltedError,
    MemoryAccessError,
    RomLoadError,
    StackUnderflowError,
    parse_program,
)
from chip8_vm.state import CPUStatus, FONT_SPRITES, MEMORY_SIZE, PROGRAM_START


@pytest.fixture
def cpu():
    return Chip8CPU(seed=0)


def load(cpu, source):
    cpu.load(parse_program(source))
    return cpu


class TestLifecycle:
    """Test reset and loading."""

    def test_power_on(self, cpu):
        """A new CPU starts at 0x200 and is not halted."""
        assert cpu.get_pc() == PROGRAM_START
        assert cpu.get_index() == 0
        assert cpu.get_cycle_count() == 0
        assert cpu.is_halted() is False

    def test_load_returns_size(self, cpu):
        """load copies the ROM to 0x200 and returns its size."""
        assert cpu.load(b"\x00\xE0\x12\x02") == 4
        assert cpu.state.read_word(0x200) == 0x00E0
        assert cpu.state.read_word(0x202) == 0x1202

    def test_load_maximum_size(self, cpu):
        """A ROM filling all memory above 0x200 loads."""
        size = MEMORY_SIZE - PROGRAM_START
        assert cpu.load(bytes([0xAA]) * size) == size
        assert cpu.state.memory[MEMORY_SIZE - 1] == 0xAA

    def test_load_too_large(self, cpu):
        """A ROM that does not fit is rejected."""
        with pytest.raises(RomLoadError):
            cpu.load(bytes(MEMORY_SIZE - PROGRAM_START + 1))

    def test_load_rom_file(self, cpu, tmp_path):
        """load_rom reads a ROM from disk."""
        rom = tmp_path / "test.ch8"
        rom.write_bytes(b"\x60\x07")
        assert cpu.load_rom(rom) == 2
        cpu.execute_cycle()
        assert cpu.get_register(0) == 7

    def test_load_rom_missing(self, cpu, tmp_path):
        """A missing ROM file raises RomLoadError."""
        with pytest.raises(RomLoadError, match="Cannot read ROM"):
            cpu.load_rom(tmp_path / "missing.ch8")

    def test_reset(self, cpu):
        """Reset restores power-on state but keeps held keys."""
        load(cpu, "6005 A123 2300")
        cpu.run(3)
        cpu.state.delay_timer = 10
        cpu.display.set(1, 1, True)
        cpu.key_down(4)

        cpu.reset()
        assert cpu.get_pc() == PROGRAM_START
        assert cpu.get_register(0) == 0
        assert cpu.get_index() == 0
        assert cpu.state.sp == 0
        assert cpu.state.delay_timer == 0
        assert cpu.display.lit_pixels() == 0
        assert cpu.state.memory[PROGRAM_START] == 0
        assert bytes(cpu.state.memory[:len(FONT_SPRITES)]) == bytes(FONT_SPRITES)
        assert cpu.keypad.is_down(4) is True

    def test_reset_clears_halt(self, cpu):
        """Reset lets a halted CPU run again."""
        load(cpu, "00EE")
        with pytest.raises(StackUnderflowError):
            cpu.execute_cycle()
        cpu.reset()
        assert cpu.is_halted() is False


class TestCycle:
    """Test fetch, PC advance and dispatch."""

    def test_pc_advances_by_two(self, cpu):
        """Each cycle moves PC to the next instruction."""
        load(cpu, "6001 6102")
        cpu.execute_cycle()
        assert cpu.get_pc() == 0x202
        cpu.execute_cycle()
        assert cpu.get_pc() == 0x204

    def test_returns_decode_result(self, cpu):
        """execute_cycle returns the decoded instruction."""
        load(cpu, "6A2B")
        result = cpu.execute_cycle()
        assert result.key == "OP_LD_IMM"
        assert result.params == {"x": 0xA, "kk": 0x2B}

    def test_unknown_opcode_only_advances_pc(self, cpu):
        """Unknown opcodes change nothing but PC."""
        load(cpu, "5FFF")
        memory = bytes(cpu.state.memory)
        before = cpu.state.snapshot()

        result = cpu.execute_cycle()

        assert result.valid is False
        after = cpu.state.snapshot()
        assert after["pc"] == before["pc"] + 2
        for field in ("registers", "i", "sp", "stack", "delay_timer", "sound_timer", "status"):
            assert after[field] == before[field]
        assert bytes(cpu.state.memory) == memory

    def test_skip_lands_two_instructions_ahead(self, cpu):
        """A taken skip jumps over one instruction."""
        load(cpu, "3000 6101 6202")
        cpu.execute_cycle()
        assert cpu.get_pc() == 0x204
        cpu.execute_cycle()
        assert cpu.get_register(1) == 0
        assert cpu.get_register(2) == 2

    def test_fetch_past_memory_halts(self, cpu):
        """Fetching the last byte faults and halts."""
        cpu.state.pc = MEMORY_SIZE - 1
        with pytest.raises(MemoryAccessError) as exc:
            cpu.execute_cycle()
        assert exc.value.pc == MEMORY_SIZE - 1
        assert exc.value.opcode is None
        assert cpu.is_halted() is True

    def test_fault_reports_instruction(self, cpu):
        """Faults carry the faulting PC and opcode."""
        load(cpu, "AFFF F233")
        cpu.execute_cycle()
        with pytest.raises(MemoryAccessError) as exc:
            cpu.execute_cycle()
        assert exc.value.pc == 0x202
        assert exc.value.opcode == 0xF233
        assert "pc=0x202" in str(exc.value)
        assert "opcode=0xF233" in str(exc.value)

    def test_halted_cpu_refuses_cycles(self, cpu):
        """Cycles after a fault raise HaltedError."""
        load(cpu, "00EE")
        with pytest.raises(StackUnderflowError):
            cpu.execute_cycle()
        with pytest.raises(HaltedError):
            cpu.execute_cycle()

    def test_jump_past_memory_faults_on_next_fetch(self, cpu):
        """JP V0 past memory faults on the following fetch."""
        load(cpu, "60FF BFFF")
        cpu.run(2)
        assert cpu.get_pc() == 0xFFF + 0xFF
        with pytest.raises(MemoryAccessError):
            cpu.execute_cycle()

    def test_fault_is_logged(self, cpu, caplog):
        """Halting faults are logged at error level."""
        load(cpu, "00EE")
        with caplog.at_level(logging.ERROR, logger="chip8_vm.cpu"):
            with pytest.raises(StackUnderflowError):
                cpu.execute_cycle()
        assert "CPU halted" in caplog.text


class TestTimers:
    def test_tick_decrements_to_zero(self, cpu):
        """Each tick lowers both timers and stops at zero."""
        cpu.state.delay_timer = 2
        cpu.state.sound_timer = 1
        cpu.tick_timer()
        assert cpu.state.delay_timer == 1
        assert cpu.state.sound_timer == 0
        cpu.tick_timer()
        cpu.tick_timer()
        assert cpu.state.delay_timer == 0
        assert cpu.state.sound_timer == 0

    def test_cycles_do_not_tick(self, cpu):
        """Executing instructions never ticks the timers."""
        load(cpu, "6010 F015 1204")
        cpu.run(20)
        assert cpu.state.delay_timer == 0x10

    def test_program_reads_timer(self, cpu):
        """LD Vx, DT sees ticks made by the host."""
        load(cpu, "6010 F015 F107")
        cpu.run(2)
        cpu.tick_timer()
        cpu.tick_timer()
        cpu.execute_cycle()
        assert cpu.get_register(1) == 0x0E


class TestWaitForKey:
    """Test the Fx0A suspended state."""

    def test_waits_without_advancing(self, cpu):
        """With no key held the CPU stays on the wait."""
        load(cpu, "F30A 6101")
        for _ in range(5):
            cpu.execute_cycle()
            assert cpu.is_awaiting_key() is True
            assert cpu.get_pc() == 0x200
            assert cpu.get_register(1) == 0

    def test_resolves_on_key(self, cpu):
        """A key pressed while waiting is stored and PC moves on."""
        load(cpu, "F30A 6101")
        cpu.execute_cycle()
        cpu.key_down(0x9)
        cpu.execute_cycle()
        assert cpu.is_awaiting_key() is False
        assert cpu.get_register(3) == 0x9
        assert cpu.get_pc() == 0x202
        cpu.execute_cycle()
        assert cpu.get_register(1) == 1

    def test_key_already_down(self, cpu):
        """A key held before the wait resolves it at once."""
        load(cpu, "F30A")
        cpu.key_down(0x0)
        cpu.execute_cycle()
        assert cpu.is_awaiting_key() is False
        assert cpu.get_register(3) == 0
        assert cpu.get_pc() == 0x202

    def test_timers_run_while_waiting(self, cpu):
        """Timers keep ticking during a wait."""
        load(cpu, "6005 F015 F00A")
        cpu.run(3)
        cpu.tick_timer()
        assert cpu.is_awaiting_key() is True
        assert cpu.state.delay_timer == 4

    def test_key_released_before_cycle(self, cpu):
        """A key released before the next cycle is missed."""
        load(cpu, "F30A")
        cpu.execute_cycle()
        cpu.key_down(2)
        cpu.key_up(2)
        cpu.execute_cycle()
        assert cpu.state.status is CPUStatus.AWAITING_KEY


class TestTrace:
    """Test execution trace functionality."""

    def test_trace_disabled_by_default(self, cpu):
        """No trace is kept unless requested."""
        load(cpu, "6001 6102")
        assert cpu.run(2) == []

    def test_trace_records_all_cycles(self):
        """Trace holds one entry per cycle."""
        cpu = Chip8CPU(trace=True)
        load(cpu, "6001 6102 1204")
        trace = cpu.run(3)

        assert len(trace) == 3
        assert trace[0].instruction == "LD V0, 0x01"
        assert trace[1].instruction == "LD V1, 0x02"
        assert trace[2].instruction == "JP 0x204"
        assert [entry.pc for entry in trace] == [0x200, 0x202, 0x204]

    def test_trace_captures_state_changes(self):
        """Trace entries hold pre and post snapshots."""
        cpu = Chip8CPU(trace=True)
        load(cpu, "602A")
        trace = cpu.run(1)

        assert trace[0].pre_state["registers"][0] == 0
        assert trace[0].post_state["registers"][0] == 0x2A
        assert trace[0].opcode == 0x602A

    def test_trace_records_fault(self):
        """A fault is recorded in the trace and summary."""
        cpu = Chip8CPU(trace=True)
        load(cpu, "00EE")
        with pytest.raises(StackUnderflowError):
            cpu.execute_cycle()
        assert cpu.get_trace()[-1].error is not None
        assert cpu.get_summary()["errors"] == [cpu.get_trace()[-1].error]

    def test_print_trace(self, capsys):
        """print_trace shows instructions and state changes."""
        cpu = Chip8CPU(trace=True)
        load(cpu, "6005 2206 0000 00EE")
        cpu.run(3)
        cpu.print_trace()
        out = capsys.readouterr().out
        assert "LD V0, 0x05" in out
        assert "V0: 00 → 05" in out
        assert "PC: 202 → 206" in out
        assert "FINAL STATE" in out


class TestSummary:
    def test_summary_fields(self, cpu):
        """Summary reports cycles, status and registers."""
        load(cpu, "6005 A300 D001")
        cpu.run(3)
        summary = cpu.get_summary()
        assert summary["cycles"] == 3
        assert summary["status"] == "running"
        assert summary["halted"] is False
        assert summary["registers"]["V0"] == 5
        assert summary["i"] == 0x300
        assert summary["pc"] == 0x206
        assert summary["lit_pixels"] == 0

    def test_instances_are_isolated(self):
        """CPUs share no state."""
        a = Chip8CPU()
        b = Chip8CPU()
        load(a, "6007 00E0")
        a.run(1)
        a.display.set(0, 0, True)
        a.key_down(1)
        assert b.get_register(0) == 0
        assert b.display.get(0, 0) is False
        assert b.keypad.is_down(1) is False
        assert b.state.memory[PROGRAM_START] == 0

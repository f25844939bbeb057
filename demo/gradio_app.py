"""chip8-vm Interactive Demo.

A Gradio web interface for running programs and viewing the display.

Usage:
    cd /path/to/chip8-vm
    python demo/gradio_app.py

Features:
    - Upload a ROM image or type a hex listing
    - Hold keypad keys for the whole run
    - See the final 64x32 display, registers and execution trace
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
from chip8_vm import Chip8CPU, VMError, disassemble, key_for_symbol, parse_program


# =============================================================================
# Example Programs
# =============================================================================

EXAMPLE_PROGRAMS = {
    "Font Digits": """    00E0        ; CLS
    6000        ; V0 = 0  (digit)
    6101        ; V1 = 1  (x)
    6201        ; V2 = 1  (y)
    F029        ; I = glyph(V0)
    D125        ; draw 5 rows at (V1, V2)
    7001        ; V0 += 1
    7105        ; x += 5
    3010        ; skip if V0 == 16
    1208        ; next digit
    1214        ; done: loop forever""",

    "BCD 234": """    60EA        ; V0 = 234
    A300        ; I = 0x300
    F033        ; BCD -> [I], [I+1], [I+2]
    F265        ; V0..V2 = [I..I+2]
    A000        ; font base
    6300        ; x = 0
    6400        ; y = 0
    F029        ; glyph of V0 (2)
    D345        ; draw
    1212        ; loop forever""",

    "Wrap Around": """    A20A        ; I = sprite
    603C        ; x = 60
    611E        ; y = 30
    D014        ; draw 4 rows, wraps both edges
    1208        ; loop forever
    FFFF FFFF   ; sprite rows""",

    "Wait For Key": """    F00A        ; V0 = next key
    F029        ; glyph of key
    6100        ; x = 0
    D115        ; draw
    1208        ; loop forever""",

    "Custom": ""
}


# =============================================================================
# Execution Functions
# =============================================================================

def run_program(program: str, rom_file, keys: str, cycles: int, seed: int) -> tuple:
    """Execute a program and return results.

    Args:
        program: Hex listing (ignored when a ROM file is given)
        rom_file: Uploaded ROM path, or None
        keys: Comma-separated host keys held during the run
        cycles: Instruction cycles to execute
        seed: Seed for the RND instruction

    Returns:
        Tuple of (display_text, summary_text, trace_text)
    """
    try:
        cpu = Chip8CPU(trace=True, seed=int(seed))

        if rom_file:
            cpu.load_rom(rom_file if isinstance(rom_file, str) else rom_file.name)
        elif program.strip():
            cpu.load(parse_program(program))
        else:
            return "", "Error: No program provided", ""

        for symbol in keys.split(","):
            symbol = symbol.strip()
            if not symbol:
                continue
            index = key_for_symbol(symbol)
            if index is None:
                return "", f"Error: Unknown key {symbol!r}", ""
            cpu.key_down(index)

        try:
            cpu.run(int(cycles))
        except VMError as e:
            error_msg = str(e)
        else:
            error_msg = None

        trace = cpu.get_trace()

        # Format summary
        summary = cpu.get_summary()
        summary_lines = [
            "EXECUTION SUMMARY",
            "=" * 40,
            f"Cycles: {summary['cycles']}",
            f"Status: {summary['status']}",
            f"PC: 0x{summary['pc']:03X}   I: 0x{summary['i']:03X}   SP: {summary['sp']}",
            f"DT: {summary['delay_timer']}   ST: {summary['sound_timer']}",
            f"Lit pixels: {summary['lit_pixels']}",
        ]
        if error_msg:
            summary_lines.append(f"\nRuntime: {error_msg}")

        summary_lines.append("")
        summary_lines.append("REGISTERS")
        summary_lines.append("-" * 40)
        for name, value in summary["registers"].items():
            marker = " *" if value != 0 else ""
            summary_lines.append(f"  {name}: 0x{value:02X} ({value:>3}){marker}")

        summary_text = "\n".join(summary_lines)

        # Format trace
        trace_lines = [
            "EXECUTION TRACE",
            "=" * 60,
        ]
        for entry in trace[:100]:  # Limit to 100 entries
            if entry.decode_result is not None:
                text = disassemble(entry.decode_result)
                trace_lines.append(f"{entry.cycle:>5}  {entry.pc:03X}: {entry.opcode:04X}  {text}")
            if entry.error:
                trace_lines.append(f"       ERROR: {entry.error}")

        if len(trace) > 100:
            trace_lines.append(f"\n... ({len(trace) - 100} more entries)")

        trace_text = "\n".join(trace_lines)

        return cpu.display.render(on="█", off=" "), summary_text, trace_text

    except Exception as e:
        return "", f"Error: {str(e)}", ""


def load_example(example_name: str) -> str:
    """Load an example program."""
    return EXAMPLE_PROGRAMS.get(example_name, "")


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="chip8-vm Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # chip8-vm: 8-bit Fantasy Console Interpreter

        Fetches 16-bit instructions, decodes them by nibble pattern and
        executes them against a 64x32 XOR display and a 16-key keypad.

        **Pipeline**: `fetch -> decode -> key -> registry -> state`
        """)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Program")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value="Font Digits",
                    label="Load Example"
                )

                program_input = gr.Textbox(
                    value=EXAMPLE_PROGRAMS["Font Digits"],
                    label="Hex Listing",
                    lines=12,
                    placeholder="00E0 1202 ..."
                )

                rom_input = gr.File(label="ROM Image (overrides listing)")

                gr.Markdown("### Settings")

                with gr.Row():
                    cycles_slider = gr.Slider(
                        minimum=1,
                        maximum=20000,
                        value=500,
                        step=1,
                        label="Cycles"
                    )
                    seed_input = gr.Number(value=0, precision=0, label="RND Seed")

                keys_input = gr.Textbox(
                    value="",
                    label="Held Keys",
                    info="Host keys, e.g. q,w (see layout below)"
                )

                run_button = gr.Button("Run Program", variant="primary")

            with gr.Column(scale=3):
                display_output = gr.Textbox(
                    label="Display (64x32)",
                    lines=32,
                    interactive=False
                )
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=16,
                        interactive=False
                    )
                    trace_output = gr.Textbox(
                        label="Execution Trace",
                        lines=16,
                        interactive=False
                    )

        with gr.Accordion("Keypad Layout", open=False):
            gr.Markdown("""
            | Host | | | | | Keypad | | | |
            |---|---|---|---|---|---|---|---|---|
            | 1 | 2 | 3 | 4 | | 1 | 2 | 3 | C |
            | q | w | e | r | | 4 | 5 | 6 | D |
            | a | s | d | f | | 7 | 8 | 9 | E |
            | z | x | c | v | | A | 0 | B | F |
            """)

        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[program_input]
        )

        run_button.click(
            fn=run_program,
            inputs=[program_input, rom_input, keys_input, cycles_slider, seed_input],
            outputs=[display_output, summary_output, trace_output]
        )

    return demo


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    demo = create_demo()
    demo.launch(
        share=False,
        server_name="0.0.0.0",
        server_port=7861,
        show_error=True
    )

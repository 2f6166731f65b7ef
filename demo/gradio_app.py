"""NIBBLE-CPU Interactive Demo.

A Gradio web interface for running NIBBLE-CPU programs.

Usage:
    cd /path/to/nibble-cpu
    python demo/gradio_app.py

Features:
    - Enter hex instruction words and initial registers
    - Load built-in example programs
    - See the per-cycle execution trace
    - Inspect final registers, PC and call stack depth
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
from nibble_cpu import Machine, MachineError
from nibble_cpu.programs import EXAMPLE_PROGRAMS


# =============================================================================
# Example Programs
# =============================================================================

def format_segments(segments: dict) -> str:
    """Render address -> words segments as '@ADDR: WORD WORD' lines."""
    lines = []
    for address, words in segments.items():
        lines.append(f"@{address:03X}: " + " ".join(f"{w:04X}" for w in words))
    return "\n".join(lines)


def format_registers(registers: dict) -> str:
    return " ".join(f"{i}={v}" for i, v in registers.items())


EXAMPLE_SOURCES = {
    name: (format_segments(p.segments), format_registers(p.registers))
    for name, p in EXAMPLE_PROGRAMS.items()
}
EXAMPLE_SOURCES["Custom"] = ("", "")


def parse_segments(text: str) -> dict:
    """Parse program text into {address: [words]}.

    Each line is either '@ADDR: WORD WORD ...' or bare words that follow
    on from the previous line. Anything after ';' is a comment.
    """
    segments = {}
    address = 0
    for raw in text.splitlines():
        line = raw.split(";", 1)[0].strip()
        if not line:
            continue
        if line.startswith("@"):
            head, _, line = line[1:].partition(":")
            address = int(head, 16)
        words = [int(tok, 16) for tok in line.split()]
        segments.setdefault(address, []).extend(words)
        address += 2 * len(words)
    return segments


def parse_registers(text: str) -> dict:
    registers = {}
    for tok in text.replace(",", " ").split():
        index, value = tok.split("=", 1)
        registers[int(index, 0)] = int(value, 0)
    return registers


# =============================================================================
# Execution Functions
# =============================================================================

def run_program(program: str, registers: str, max_cycles: int) -> tuple:
    """Execute a program and return results.

    Args:
        program: Hex words, optionally prefixed with '@ADDR:'
        registers: Initial registers as 'INDEX=VALUE' pairs
        max_cycles: Maximum execution cycles

    Returns:
        Tuple of (summary_text, trace_text, registers_text)
    """
    if not program.strip():
        return "Error: No program provided", "", ""

    machine = Machine(max_cycles=int(max_cycles), record_trace=True)
    try:
        for address, words in parse_segments(program).items():
            machine.load_words(words, address)
        for index, value in parse_registers(registers).items():
            machine.write_register(index, value)
    except (ValueError, MachineError) as e:
        return f"Load error: {e}", "", ""

    try:
        trace = machine.run()
    except MachineError as e:
        error_msg = str(e)
        trace = machine.get_trace()
    else:
        error_msg = None

    # Format summary
    summary = machine.get_summary()
    summary_lines = [
        "EXECUTION SUMMARY",
        "=" * 40,
        f"Cycles: {summary['cycles']}",
        f"Halted: {'Yes' if summary['halted'] else 'No'}",
        f"PC: 0x{summary['pc']:03X}",
        f"Stack depth: {summary['stack_pointer']}",
    ]
    if error_msg:
        summary_lines.append(f"\nRuntime: {error_msg}")
    if summary['notes']:
        summary_lines.append("\nDiagnostics:")
        for note in summary['notes'][:5]:
            summary_lines.append(f"  - {note}")

    summary_text = "\n".join(summary_lines)

    # Format trace
    trace_lines = [
        "EXECUTION TRACE",
        "=" * 60,
    ]
    for entry in trace[:100]:  # Limit to 100 entries
        trace_lines.append(f"\n--- Cycle {entry.cycle} (PC=0x{entry.pc:03X}) ---")
        trace_lines.append(f"Word:        0x{entry.instruction.word:04X}")
        trace_lines.append(f"Decoded Key: {entry.key}")

        pre_regs = entry.pre_state['registers']
        post_regs = entry.post_state['registers']
        changes = [
            f"R{i}: {before} -> {after}"
            for i, (before, after) in enumerate(zip(pre_regs, post_regs))
            if before != after
        ]
        if changes:
            trace_lines.append(f"Changes:     {', '.join(changes)}")

    if len(trace) > 100:
        trace_lines.append(f"\n... ({len(trace) - 100} more entries)")

    trace_text = "\n".join(trace_lines)

    # Format registers
    reg_lines = [
        "FINAL REGISTERS",
        "=" * 30,
    ]
    for reg, value in machine.dump_registers().items():
        marker = " *" if value != 0 else ""
        reg_lines.append(f"  {reg:>3}: {value:>3} (0x{value:02X}){marker}")

    registers_text = "\n".join(reg_lines)

    return summary_text, trace_text, registers_text


def load_example(example_name: str) -> tuple:
    """Load an example program and its registers."""
    return EXAMPLE_SOURCES.get(example_name, ("", ""))


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    first = next(iter(EXAMPLE_PROGRAMS))

    with gr.Blocks(title="NIBBLE-CPU Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # NIBBLE-CPU

        A virtual CPU with 16 8-bit registers, 4 KiB of memory and a
        16-deep call stack. Each instruction is one big-endian 16-bit word:
        `operation | x | y | z`.
        """)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Program")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_SOURCES.keys()),
                    value=first,
                    label="Load Example"
                )

                program_input = gr.Textbox(
                    value=EXAMPLE_SOURCES[first][0],
                    label="Instruction Words (hex)",
                    lines=12,
                    placeholder="@000: 1012 0000"
                )

                registers_input = gr.Textbox(
                    value=EXAMPLE_SOURCES[first][1],
                    label="Initial Registers",
                    placeholder="0=3 1=4"
                )

                max_cycles = gr.Slider(
                    minimum=10,
                    maximum=100000,
                    value=10000,
                    step=10,
                    label="Max Cycles"
                )

                run_button = gr.Button("Run Program", variant="primary")

            with gr.Column(scale=3):
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=10,
                        interactive=False
                    )
                    registers_output = gr.Textbox(
                        label="Final Registers",
                        lines=10,
                        interactive=False
                    )

                trace_output = gr.Textbox(
                    label="Execution Trace",
                    lines=20,
                    interactive=False
                )

        with gr.Accordion("ISA Reference", open=False):
            gr.Markdown("""
            | Word | Instruction | Effect |
            |------|-------------|--------|
            | `0000` | HALT | Stop execution |
            | `0111` | NOP | No operation |
            | `1xyz` | ADD | Rz = Rx + Ry (mod 256) |
            | `2xiz` | ADD imm | Rz = Rx + i (mod 256) |
            | `3xyz` | OR | Rz = Rx \\| Ry |
            | `4xiz` | OR imm | Rz = Rx \\| i |
            | `5xyz` | AND | Rz = Rx & Ry |
            | `6xiz` | AND imm | Rz = Rx & i |
            | `7xy-` | MOV | Rx = Ry |
            | `8xi-` | MOV imm | Rx = i |
            | `9aaa` | JUMP | PC = aaa |
            | `Aaaa` | CALL | push PC, PC = aaa |
            | `B---` | RET | resume after the matching CALL |

            **Registers**: R0-R15 (8-bit unsigned)
            **Stack**: 16 return addresses; overflow and underflow are faults
            """)

        # Event handlers
        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[program_input, registers_input]
        )

        run_button.click(
            fn=run_program,
            inputs=[program_input, registers_input, max_cycles],
            outputs=[summary_output, trace_output, registers_output]
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

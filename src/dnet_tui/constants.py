"""Static catalog data for the dashboard."""

from importlib.metadata import PackageNotFoundError, version

try:
    VERSION = version("dnet-tui")
except PackageNotFoundError:
    VERSION = "0.0.0"

MENU_BANNER = "\n".join(
    [
        "      00000    000000                                                        ",
        "   000    000000000000000   0000000000000000      000000000000          00000",
        " 000       000000   000000000   00000    00000 000    00000            000000",
        "00        00000     000000     00000    00000000     00000           00000000",
        "00       00000     0000000    00000    00000000     00000           00 000000",
        "00      00000     0000000    0000000000000  000    00000          00  0000000",
        " 000   00000     0000000    00000   000000  00    000000        000   000000 ",
        "      00000      00000     00000    00000   00   00000000      00    0000000 ",
        "     00000     000000     000000   000000    00 000000  0000000000000 00000  ",
        "    00000    0000000     00000     00000 0     000000      000        00000  ",
        " 0000000   00000       0000000    00000000  000000000    000        0000000  ",
    ]
)

# Fallback model list when /v1/models is unreachable
AVAILABLE_MODELS: list[str] = [
    # qwen 4b
    "Qwen/Qwen3-4B-MLX-4bit",
    "Qwen/Qwen3-4B-MLX-8bit",
    # qwen 30b a3b
    "Qwen/Qwen3-30B-A3B-MLX-8bit",
    "Qwen/Qwen3-30B-A3B-MLX-bf16",
    "Qwen/Qwen3-30B-A3B-MLX-6bit",
    # qwen 32b
    "Qwen/Qwen3-32B-MLX-bf16",
    "Qwen/Qwen3-32B-MLX-8bit",
    "Qwen/Qwen3-32B-MLX-6bit",
    # openai
    "openai/gpt-oss-120b",
    "openai/gpt-oss-20b",
    # nous
    "NousResearch/Hermes-4-70B",
]

# Substring of the model id -> transformer layer count, checked in order.
MODEL_LAYERS: list[tuple[str, int]] = [
    ("Qwen3-4B", 36),
    ("Qwen3-30B-A3B", 30),
    ("Qwen3-32B", 32),
    ("Hermes-4-70B", 70),
    ("Llama-3.1-8B", 32),
    ("Llama-3.1-70B", 80),
    ("gpt-oss-20b", 20),
    ("gpt-oss-120b", 120),
]
DEFAULT_NUM_LAYERS = 36


def layers_for_model(model: str) -> int:
    """Number of layers for a known model family, else the default."""
    for needle, count in MODEL_LAYERS:
        if needle in model:
            return count
    return DEFAULT_NUM_LAYERS

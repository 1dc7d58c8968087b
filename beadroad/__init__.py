"""Live bead-road feed for blockchain-derived outcome records.

Blocks arrive one at a time from the backend; each is classified by parity
(ODD/EVEN) and size (BIG/SMALL). A sampling rule (step + offset on block
height) selects which blocks are shown, the newest ``cols * rows`` aligned
blocks are retained, and they are laid out column by column on a fixed
bead grid that slides one column at a time once full.
"""

__all__ = [
    "config",
    "core",
    "data",
    "utils",
]

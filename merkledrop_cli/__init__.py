"""
Module 09C - Merkledrop CLI

Command-line interface for offline distribution work.

Usage:
    python -m merkledrop_cli build allocations.csv --out tree.json
    python -m merkledrop_cli validate allocations.json
    python -m merkledrop_cli verify --root 0x.. --address 0x.. --amount 100 --index 0 --proof 0x.. 0x..
    python -m merkledrop_cli config --init
"""

__version__ = "0.1.0"

#!/usr/bin/env python3
"""
SwitchBot Meter Plus の温湿度をブロードキャストから記録するプログラム

Usage:
    python main.py [ADDRESS ...] [--discover] [--output FILE]
"""
from meterlogger.cli import run

if __name__ == "__main__":
    run()

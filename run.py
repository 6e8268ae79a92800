"""
Entry Point Script (Bootstrap)
==============================
Runs the replay driver straight from a source checkout.

Why is this file needed?
------------------------
1. It is located outside the 'src' package to act as a convenient runner.
2. It modifies 'sys.path' so 'curleacoustics' resolves without installing it.

Usage:
    $ python run.py settings.json recording.h5 --mesh surface.msh
"""
import sys
import os

current_dir: str = os.path.dirname(os.path.abspath(__file__))
src_path: str = os.path.join(current_dir, 'src')
sys.path.insert(0, src_path)

from curleacoustics.main import main

if __name__ == "__main__":
    sys.exit(main())

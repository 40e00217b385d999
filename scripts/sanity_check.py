"""
Sanity Check Script for the Localization Environment

This script verifies that the numeric stack the localizer depends on (numpy,
scipy, PyYAML, Pillow) and the markovloc package itself can be imported. It
serves as a quick diagnostic tool to confirm the environment is correctly
configured before running a rollout or the test suite.

Usage:
    python scripts/sanity_check.py

The script prints the Python version and the import status of every
dependency. If any import fails, the exception is re-raised with its
original traceback.
"""

import sys

def main():
    print("Python:", sys.version)
    for name in ("numpy", "scipy", "yaml", "PIL"):
        try:
            module = __import__(name)
            print(f"{name} import: OK ({getattr(module, '__version__', 'unknown')})")
        except Exception:
            print(f"{name} import: FAIL")
            raise

    try:
        from markovloc.belief.updater import MarkovLocalizer
        print("markovloc import: OK")
    except Exception:
        print("markovloc import: FAIL")
        raise

if __name__ == "__main__":
    main()

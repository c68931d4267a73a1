#!/usr/bin/env python3
"""``flowcorr`` Qn vector correction pass runner.

Usage:
    python scripts/run_corrections.py scripts/user_config.py
    python scripts/run_corrections.py scripts/user_config.py --events events.parquet
    python scripts/run_corrections.py scripts/user_config.py \
        --calibration-input output/pass1/calibration/calibration.nc --base-dir output/pass2

Note: User config in scripts/user_config.py, expert defaults in flowcorr.schemas.param
"""

from flowcorr.cli.run_corrections import main


if __name__ == "__main__":
    main()

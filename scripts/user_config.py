"""flowcorr User Configuration.

This is the user-facing configuration file. Modify settings here to customize
the correction passes. Advanced settings are in flowcorr.schemas.param.

Usage:
    python scripts/run_corrections.py scripts/user_config.py
    python scripts/run_corrections.py scripts/user_config.py --calibration-input <pass1>/calibration/calibration.nc
"""

CONFIG = {
    # ========================================================================
    # INPUT & OUTPUT
    # ========================================================================
    "BASE_DIR": "./flowcorr_output/pass1",   # All outputs of this pass go here
    "EVENTS": "./events.parquet",            # One row per event
    "CALIBRATION_INPUT": None,               # calibration.nc of the previous pass
    "OUTPUT_FORMAT": "parquet",              # "parquet" or "csv"

    # ========================================================================
    # EVENT CLASSES
    # ========================================================================
    # Each label is also the event-table column holding the variable.
    "EVENT_CLASSES": [
        {"label": "centrality", "n_bins": 10, "low": 0.0, "high": 100.0},
        {"label": "vtx_z", "edges": [-10.0, -5.0, 0.0, 5.0, 10.0]},
    ],

    # ========================================================================
    # CORRECTION DEFAULTS
    # ========================================================================
    "SIGNIFICANCE_THRESHOLD": 2.0,    # Alignment significance in sigma
    "WIDTH_EQUALIZATION": False,      # Divide recentered vectors by their spread
    "COLLECT_AFTER_APPLY": True,      # Keep collecting for a further refinement pass

    # ========================================================================
    # DETECTORS
    # ========================================================================
    # Plain vectors are read from {configuration}_qx{h} / {configuration}_qy{h}
    # columns, with optional {configuration}_good and {configuration}_mult.
    "DETECTORS": [
        {
            "name": "TPC",
            "detector_id": 0,
            "configurations": [
                {
                    "name": "TPC",
                    "harmonics": [1, 2, 3],
                    "corrections": [
                        {"kind": "recentering"},
                    ],
                },
            ],
        },
        {
            "name": "VZERO",
            "detector_id": 1,
            "configurations": [
                {
                    "name": "VZEROA",
                    "harmonics": [1, 2, 3],
                    "corrections": [
                        {"kind": "recentering", "width_equalization": True},
                        {"kind": "alignment", "harmonic": 2, "reference": "TPC"},
                        {"kind": "twist_and_rescale", "harmonic": 2, "reference": "TPC"},
                    ],
                },
            ],
        },
    ],
}

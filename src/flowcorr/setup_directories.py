"""
Directory setup for the correction pipeline.

One flat directory per processing pass:
- calibration: profiles produced by the pass (input of the next pass)
- corrected: corrected event tables
- qa: QA counters
- logs: pipeline log files
"""

from pathlib import Path
from typing import Dict, Union

OUTPUT_SUBDIRECTORIES = ("calibration", "corrected", "qa", "logs")


def setup_output_directories(base_output_dir: Union[str, Path], verbose: bool = False) -> Dict[str, Path]:
    """
    Set up the output directory structure.

    Parameters
    ----------
    base_output_dir : str or Path
        Base output directory; created if missing.
    verbose : bool, optional
        Print the created directories.

    Returns
    -------
    dict
        Dictionary with paths: 'base', 'calibration', 'corrected', 'qa', 'logs'
    """
    base_output_dir = Path(base_output_dir).expanduser().resolve()

    directories = {"base": base_output_dir}
    for name in OUTPUT_SUBDIRECTORIES:
        directories[name] = base_output_dir / name

    for path in directories.values():
        path.mkdir(parents=True, exist_ok=True)

    if verbose:
        print("\nOutput directories created:")
        for key, path in directories.items():
            print(f"  {key:12s}: {path}")

    return directories

"""Event-table correction runner.

Runs every event of an event table through the correction manager and
persists the pass products: the corrected event table, the calibration
profiles for the next pass and the QA counters.
"""

import time
import logging
from pathlib import Path
from typing import Dict, Optional, Union, TYPE_CHECKING

import numpy as np
import pandas as pd

from flowcorr.contracts import ContractViolation, assert_event_table
from flowcorr.core.registry import CalibrationRegistry
from flowcorr.pipeline.builder import build_manager
from flowcorr.pipeline.events import (
    qx_column,
    qy_column,
    good_column,
    multiplicity_column,
    required_columns,
    read_event_table,
    write_event_table,
    vector_columns,
    event_class_matrix,
)
from flowcorr.pipeline.manager import CorrectionManager
from flowcorr.setup_directories import setup_output_directories

if TYPE_CHECKING:
    from flowcorr.schemas import InternalConfig

__all__ = ['CorrectionRunner']

logger = logging.getLogger(__name__)

LOG_FILENAME = "flowcorr.log"


class CorrectionRunner:
    """Runs one correction pass over an event table.

    A pass is one sweep over the events. The first pass has no calibration
    input, so every step collects statistics; each later pass attaches the
    ``calibration.nc`` of the previous one and applies the steps whose
    statistics it finds, while collecting for the next refinement.

    **Outputs** (under ``output_dirs``):

    - ``corrected/<filename>.parquet`` (or ``.csv``): event-class columns,
      then per configuration the corrected vector ``{cfg}_corrected_qx{h}``,
      ``{cfg}_corrected_qy{h}``, ``{cfg}_corrected_good``, the label of the
      last correction applied ``{cfg}_correction`` and, with
      ``output.include_steps``, the plain vector and every applied step's
      output (``{cfg}_plain_*``, ``{cfg}_rec_*``, ``{cfg}_align_*``,
      ``{cfg}_twist_*``).
    - ``calibration/calibration.nc``: profiles collected in this pass.
    - ``qa/qa.nc``: QA counters (twist not-validated entries).
    - ``logs/flowcorr.log``: pipeline log.

    Example usage::

        config = resolve_config(ParamConfig(), user_cfg, cli_cfg)
        runner = CorrectionRunner(config, setup_output_directories(config.base_dir))
        corrected = runner.run()
    """

    def __init__(self, config: "InternalConfig",
                 output_dirs: Optional[Dict[str, Union[str, Path]]] = None):
        """Initialize the runner.

        Parameters
        ----------
        config : InternalConfig
            Resolved runtime configuration.

        output_dirs : dict, optional
            Output directory paths from ``setup_output_directories``. Created
            under ``config.base_dir`` when not given.
        """
        self.config = config
        if output_dirs is None:
            output_dirs = config.output_dirs or setup_output_directories(config.base_dir)
        self.output_dirs = {k: Path(v) for k, v in output_dirs.items()}

        self.manager: Optional[CorrectionManager] = None
        self.outputs: Dict[str, Path] = {}
        self._start_time = None

    def _setup_logging(self):
        """Configure root logger with file and console handlers.

        Log level from config, log file under the ``logs`` output directory.
        """
        log_level = getattr(logging, self.config.logging.level.upper(), logging.INFO)

        log_dir = self.output_dirs["logs"]
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / LOG_FILENAME

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # Clear existing handlers and add new ones
        root = logging.getLogger()
        root.setLevel(log_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)

        # File handler
        fh = logging.FileHandler(log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

        # Console handler
        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

        logger.info("Logging: level=%s, file=%s", logging.getLevelName(log_level), log_path)

    def setup(self, calibration_input: Optional[CalibrationRegistry] = None) -> CorrectionManager:
        """Build the manager and attach the calibration input.

        Parameters
        ----------
        calibration_input : CalibrationRegistry, optional
            Previous pass statistics. When None, ``calibration.input`` from
            the configuration is loaded if set.
        """
        if calibration_input is None and self.config.calibration.input:
            calibration_input = CalibrationRegistry.load(self.config.calibration.input)
            logger.info("Calibration input: %s (%d entries)",
                        self.config.calibration.input, len(calibration_input))

        self.manager = build_manager(self.config)
        self.manager.setup(
            calibration_input,
            collect_after_apply=self.config.corrections.collect_after_apply,
        )
        return self.manager

    def _plain_vectors(self, df: pd.DataFrame) -> Dict[str, tuple]:
        """Column arrays of every configuration's plain vector.

        Harmonics activated by steps on top of the configured ones are read
        when the table has them. Rows with non-finite components are bad
        quality.
        """
        n = len(df)
        plain = {}
        for configuration in self.manager.configurations:
            name = configuration.name
            components = {}
            finite = np.ones(n, dtype=bool)
            for h in configuration.harmonics:
                qx_col, qy_col = qx_column(name, h), qy_column(name, h)
                if qx_col not in df.columns or qy_col not in df.columns:
                    continue
                qx = df[qx_col].to_numpy(dtype=np.float64)
                qy = df[qy_col].to_numpy(dtype=np.float64)
                finite &= np.isfinite(qx) & np.isfinite(qy)
                components[h] = (np.nan_to_num(qx), np.nan_to_num(qy))

            good = finite
            if good_column(name) in df.columns:
                good = good & df[good_column(name)].to_numpy(dtype=bool)

            if multiplicity_column(name) in df.columns:
                multiplicity = df[multiplicity_column(name)].to_numpy(dtype=np.float64)
            else:
                multiplicity = np.zeros(n)

            plain[name] = (components, good, multiplicity)
        return plain

    def _event_record(self) -> Dict[str, object]:
        record = {}
        include_steps = self.config.output.include_steps
        for configuration in self.manager.configurations:
            name = configuration.name
            current = configuration.current_vector
            record.update(vector_columns(name, "corrected", current))
            record[f"{name}_correction"] = current.name
            if include_steps:
                record.update(vector_columns(name, "plain", configuration.plain_vector))
                for step in configuration.steps:
                    if step.is_being_applied:
                        record.update(vector_columns(name, step.corrected_vector.name, step.corrected_vector))
        return record

    def process(self, df: pd.DataFrame) -> pd.DataFrame:
        """Correct every event of ``df`` and collect calibration statistics.

        Parameters
        ----------
        df : pd.DataFrame
            Event table (see ``flowcorr.pipeline.events``).

        Returns
        -------
        pd.DataFrame
            Event-class columns followed by the corrected vector columns,
            one row per input event, same index.

        Raises
        ------
        ContractViolation
            If the table misses a required column or the runner is not set up.
        """
        if self.manager is None:
            raise ContractViolation("Runner not set up: call setup() before process()")
        assert_event_table(df, required_columns(self.config))

        variables = event_class_matrix(df, self.config)
        plain = self._plain_vectors(df)

        records = []
        for i in range(len(df)):
            self.manager.clear_event()
            for name, (components, good, multiplicity) in plain.items():
                self.manager.set_plain_vector(
                    name,
                    {h: (qx[i], qy[i]) for h, (qx, qy) in components.items()},
                    good_quality=bool(good[i]),
                    multiplicity=float(multiplicity[i]),
                )
            self.manager.process_event(variables[i])
            records.append(self._event_record())

        labels = [ec.label for ec in self.config.event_classes]
        corrected = pd.DataFrame(records, index=df.index)
        logger.info("Processed %d events", len(df))
        return pd.concat([df[labels], corrected], axis=1)

    def save_results(self, corrected: pd.DataFrame) -> Dict[str, Path]:
        """Persist the corrected table, calibration profiles and QA counters."""
        output = self.config.output
        self.outputs["corrected"] = write_event_table(
            corrected,
            self.output_dirs["corrected"] / output.filename,
            fmt=output.format,
            compression=output.compression,
        )
        self.outputs["calibration"] = self.manager.calibration_output.save(
            self.output_dirs["calibration"] / self.config.calibration.output_filename
        )
        if len(self.manager.qa_histograms):
            self.outputs["qa"] = self.manager.qa_histograms.save(
                self.output_dirs["qa"] / self.config.calibration.qa_filename
            )
        return self.outputs

    def run(self, events: Optional[Union[str, Path, pd.DataFrame]] = None,
            calibration_input: Optional[CalibrationRegistry] = None) -> pd.DataFrame:
        """Run one full pass: logging, setup, processing, persistence.

        Parameters
        ----------
        events : str, Path or DataFrame, optional
            Event table or its path. Default: ``events.path`` from config.

        calibration_input : CalibrationRegistry, optional
            Previous pass statistics (default: ``calibration.input``).

        Returns
        -------
        pd.DataFrame
            Corrected event table.
        """
        self._setup_logging()
        self._start_time = time.time()

        logger.info("=" * 60)
        logger.info("Starting Qn Vector Correction Pass")
        logger.info("=" * 60)

        if events is None:
            events = self.config.events.path
        if events is None:
            raise ValueError("No event table: set events.path or pass events to run()")
        if isinstance(events, pd.DataFrame):
            df = events
        else:
            df = read_event_table(events, self.config.events.format)

        self.setup(calibration_input)
        corrected = self.process(df)
        self.save_results(corrected)
        self._log_summary()
        return corrected

    def _log_summary(self):
        elapsed = time.time() - self._start_time if self._start_time else 0
        logger.info("=" * 60)
        logger.info("Pass complete: %d events in %.1f seconds", self.manager.n_events, elapsed)
        for name, usage in self.manager.report_usage().items():
            logger.info("%s: steps=%s calibrating=%s applying=%s",
                        name, usage["steps"], usage["calibrating"], usage["applying"])
        for counter in self.manager.qa_histograms:
            logger.info("%s: %d events in non-validated bins, %d out of range",
                        counter.name, int(counter.total), int(counter.out_of_range))
        for key, path in self.outputs.items():
            logger.info("Output %s: %s", key, path)
        logger.info("=" * 60)

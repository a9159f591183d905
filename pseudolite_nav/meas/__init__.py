"""Measurement models."""

from pseudolite_nav.meas.iono_klobuchar import klobuchar_correction_s, klobuchar_delay_m
from pseudolite_nav.meas.pseudorange import (
    EpochMeasurements,
    compute_pseudorange_and_uncertainties,
    epoch_pseudoranges,
    filter_gps_measurements,
    pseudorange_uncertainty_m,
)
from pseudolite_nav.meas.smoothing import (
    CarrierPhaseSmoother,
    DopplerSmoother,
    NoSmoothing,
    PseudorangeSmoother,
    make_smoother,
)
from pseudolite_nav.meas.tropo_egnos import egnos_tropo_delay_m

__all__ = [
    "CarrierPhaseSmoother",
    "DopplerSmoother",
    "EpochMeasurements",
    "NoSmoothing",
    "PseudorangeSmoother",
    "compute_pseudorange_and_uncertainties",
    "egnos_tropo_delay_m",
    "epoch_pseudoranges",
    "filter_gps_measurements",
    "klobuchar_correction_s",
    "klobuchar_delay_m",
    "make_smoother",
    "pseudorange_uncertainty_m",
]

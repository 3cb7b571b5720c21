"""
Historical annual equity returns used by bootstrap mode.

Regime labels follow one rule for every index:
  - crash:    annual return <= -10%
  - recovery: years after a crash until the pre-crash level is regained
  - normal:   everything else

Returns are in percent (43.61 means +43.61%).
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from .data_structures import Regime


# (year, return %, regime)
SP500_HISTORICAL_RETURNS: Tuple[Tuple[int, float, str], ...] = (
    (1928, 43.61, "normal"),
    (1929, -8.42, "normal"),
    # Great Depression
    (1930, -24.90, "crash"),
    (1931, -43.34, "crash"),
    (1932, -8.19, "recovery"),
    (1933, 53.99, "recovery"),
    (1934, -1.44, "recovery"),
    (1935, 47.67, "recovery"),
    (1936, 33.92, "normal"),
    (1937, -35.03, "crash"),
    (1938, 31.12, "recovery"),
    (1939, -0.41, "recovery"),
    (1940, -9.78, "recovery"),
    (1941, -11.59, "crash"),
    (1942, 20.34, "recovery"),
    (1943, 25.90, "recovery"),
    (1944, 19.75, "normal"),
    (1945, 36.44, "normal"),
    (1946, -8.07, "normal"),
    (1947, 5.71, "normal"),
    (1948, 5.50, "normal"),
    (1949, 18.79, "normal"),
    (1950, 31.71, "normal"),
    (1951, 24.02, "normal"),
    (1952, 18.37, "normal"),
    (1953, -0.99, "normal"),
    (1954, 52.62, "normal"),
    (1955, 31.56, "normal"),
    (1956, 6.56, "normal"),
    (1957, -10.78, "crash"),
    (1958, 43.36, "recovery"),
    (1959, 11.96, "normal"),
    (1960, 0.47, "normal"),
    (1961, 26.89, "normal"),
    (1962, -8.73, "normal"),
    (1963, 22.80, "normal"),
    (1964, 16.48, "normal"),
    (1965, 12.45, "normal"),
    (1966, -10.06, "crash"),
    (1967, 23.98, "recovery"),
    (1968, 11.06, "normal"),
    (1969, -8.50, "normal"),
    # Stagflation
    (1970, 4.01, "normal"),
    (1971, 14.31, "normal"),
    (1972, 18.98, "normal"),
    (1973, -14.66, "crash"),
    (1974, -26.47, "crash"),
    (1975, 37.20, "recovery"),
    (1976, 23.84, "recovery"),
    (1977, -7.18, "recovery"),
    (1978, 6.56, "recovery"),
    (1979, 18.44, "normal"),
    (1980, 32.50, "normal"),
    (1981, -4.92, "normal"),
    (1982, 21.55, "normal"),
    (1983, 22.56, "normal"),
    (1984, 6.27, "normal"),
    (1985, 31.73, "normal"),
    (1986, 18.67, "normal"),
    (1987, 5.25, "normal"),  # Black Monday, positive by year end
    (1988, 16.61, "normal"),
    (1989, 31.69, "normal"),
    (1990, -3.10, "normal"),
    (1991, 30.47, "normal"),
    (1992, 7.62, "normal"),
    (1993, 10.08, "normal"),
    (1994, 1.32, "normal"),
    (1995, 37.58, "normal"),
    (1996, 22.96, "normal"),
    (1997, 33.36, "normal"),
    (1998, 28.58, "normal"),
    (1999, 21.04, "normal"),
    # Dot-com bust and financial crisis
    (2000, -9.10, "normal"),
    (2001, -11.89, "crash"),
    (2002, -22.10, "crash"),
    (2003, 28.68, "recovery"),
    (2004, 10.88, "recovery"),
    (2005, 4.91, "recovery"),
    (2006, 15.79, "recovery"),
    (2007, 5.49, "normal"),
    (2008, -37.00, "crash"),
    (2009, 26.46, "recovery"),
    (2010, 15.06, "recovery"),
    (2011, 2.11, "recovery"),
    (2012, 16.00, "recovery"),
    (2013, 32.39, "normal"),
    (2014, 13.69, "normal"),
    (2015, 1.38, "normal"),
    (2016, 11.96, "normal"),
    (2017, 21.83, "normal"),
    (2018, -4.38, "normal"),
    (2019, 31.49, "normal"),
    (2020, 18.40, "normal"),  # COVID drawdown recovered within the year
    (2021, 28.71, "normal"),
    (2022, -18.11, "crash"),
    (2023, 26.29, "recovery"),
    (2024, 24.88, "normal"),
    (2025, 17.78, "normal"),
)

MSCI_ACWI_HISTORICAL_RETURNS: Tuple[Tuple[int, float, str], ...] = (
    (2001, -16.21, "crash"),
    (2002, -19.32, "crash"),
    (2003, 33.99, "recovery"),
    (2004, 15.23, "recovery"),
    (2005, 10.84, "recovery"),
    (2006, 20.95, "normal"),
    (2007, 11.66, "normal"),
    (2008, -42.19, "crash"),
    (2009, 34.63, "recovery"),
    (2010, 12.67, "recovery"),
    (2011, -7.35, "recovery"),
    (2012, 16.13, "recovery"),
    (2013, 22.80, "normal"),
    (2014, 4.16, "normal"),
    (2015, -2.36, "normal"),
    (2016, 8.40, "normal"),
    (2017, 24.35, "normal"),
    (2018, -9.12, "normal"),
    (2019, 26.58, "normal"),
    (2020, 16.33, "normal"),
    (2021, 18.67, "normal"),
    (2022, -18.37, "crash"),
    (2023, 22.30, "recovery"),
    (2024, 17.45, "normal"),
    (2025, 22.41, "normal"),
)

# Mean length of the recovery phase per crash event (back-to-back crash
# years count as one event).
#   S&P 500:   (4+3+2+1+1+4+4+4+1) / 9 = 2.67
#   MSCI ACWI: (3+4+1) / 3           = 2.67
SP500_AVERAGE_RECOVERY_YEARS = 2.7
MSCI_ACWI_AVERAGE_RECOVERY_YEARS = 2.7


@dataclass(frozen=True)
class BootstrapSource:
    name: str
    returns_by_regime: Dict[Regime, np.ndarray]
    crash_probability: float  # %
    average_recovery_years: float

    def regime_stats(self) -> Dict[Regime, Dict[str, float]]:
        """Per-regime count, mean and (population) standard deviation."""
        return {
            regime: {
                "count": int(values.size),
                "mean": float(np.mean(values)),
                "std_dev": float(np.std(values)),
            }
            for regime, values in self.returns_by_regime.items()
        }


def _build_source(name, table, average_recovery_years) -> BootstrapSource:
    by_regime = {
        regime: np.array([r for _, r, label in table if label == regime.value])
        for regime in Regime
    }
    for arr in by_regime.values():
        arr.setflags(write=False)
    crash_probability = by_regime[Regime.CRASH].size / len(table) * 100
    return BootstrapSource(
        name=name,
        returns_by_regime=by_regime,
        crash_probability=crash_probability,
        average_recovery_years=average_recovery_years,
    )


BOOTSTRAP_SOURCES: Dict[str, BootstrapSource] = {
    "sp500": _build_source("sp500", SP500_HISTORICAL_RETURNS, SP500_AVERAGE_RECOVERY_YEARS),
    "acwi": _build_source("acwi", MSCI_ACWI_HISTORICAL_RETURNS, MSCI_ACWI_AVERAGE_RECOVERY_YEARS),
}


def get_bootstrap_source(index: Optional[str]) -> Optional[BootstrapSource]:
    """None for parametric mode ('none', None or an unknown name)."""
    if not index or index == "none":
        return None
    return BOOTSTRAP_SOURCES.get(index)

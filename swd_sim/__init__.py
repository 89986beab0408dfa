"""SWD-Sim: Stage-structured population model of spotted wing drosophila.

A single-cell, temperature-driven model coupling:
  - Egg → instar 1–3 → pupa → adult male / seven adult-female age stages
  - Temperature-dependent fertility, development and mortality curves
  - A lagged fruit-ripeness proxy that modulates development and mortality
  - A day-length/temperature diapause gate that suppresses reproduction
  - Batch sweeps over injection timing, fruit harvest and diapause thresholds

Integration is fixed-step explicit Euler throughout.
"""

__version__ = "0.1.0"

"""SWD-Sim visualization library.

Modules:
  - style: Dark theme colours and helpers
  - population: Stage abundance, female age structure, fruit quality
    and sweep heatmaps
"""

from swd_sim.viz.style import (  # noqa: F401
    ACCENT_COLORS,
    DARK_BG,
    DARK_PANEL,
    FRUIT_COLOR,
    GRID_COLOR,
    SERIES_COLORS,
    TEXT_COLOR,
    apply_dark_theme,
    dark_figure,
    save_figure,
)

from swd_sim.viz.population import (  # noqa: F401
    plot_female_age_classes,
    plot_fruit_quality,
    plot_stage_timeseries,
    plot_sweep_heatmap,
    sweep_grid,
)

"""
Grid Aggregator Component
This module partitions an image into cells and computes brightness aggregates
per row, column, whole grid and user-defined category.
"""

import logging
from typing import Dict, List, Optional, Any, Sequence, Tuple
from dataclasses import dataclass, field
import numpy as np

from .coordinate_system import CoordinateTransformer, ImageDimensions, LineSet

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class CellRect:
    """Pixel rectangle of one grid cell."""
    x: int
    y: int
    width: int
    height: int

@dataclass(frozen=True)
class SelectedCell:
    """A grid cell assigned to a category."""
    row: int
    col: int
    category_id: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SelectedCell':
        return cls(row=int(data['row']), col=int(data['col']), category_id=str(data['categoryId']))

    def to_dict(self) -> Dict[str, Any]:
        return {'row': self.row, 'col': self.col, 'categoryId': self.category_id}

@dataclass(frozen=True)
class Category:
    """A named group of cells."""
    id: str
    name: str
    color: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Category':
        return cls(id=str(data['id']), name=str(data['name']), color=str(data['color']))

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'color': self.color}

@dataclass
class CategoryMeanResult:
    """Aggregates of one category."""
    category_id: str
    category_name: str = ""
    color: str = ""
    mean: float = 0.0
    cell_count: int = 0
    cells: List[Tuple[int, int]] = field(default_factory=list)
    row_means: List[Optional[float]] = field(default_factory=list)
    row_means_average: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CategoryMeanResult':
        """Build from the service's camelCase representation."""
        cells = [
            (int(cell['row']), int(cell['col']))
            for cell in data.get('cells') or []
            if isinstance(cell, dict) and isinstance(cell.get('row'), int) and isinstance(cell.get('col'), int)
        ]
        return cls(
            category_id=str(data.get('categoryId', '')),
            category_name=data.get('categoryName', ''),
            color=data.get('color', ''),
            mean=float(data.get('meanValue') or 0.0),
            cell_count=int(data.get('cellCount') or 0),
            cells=cells,
            row_means=list(data.get('rowMeans') or []),
            row_means_average=data.get('rowMeansAverage'),
        )

@dataclass
class GridSummary:
    """Per-cell, per-row, per-column and overall brightness of a grid."""
    cell_means: List[List[Optional[float]]]
    row_means: List[float]
    col_means: List[float]
    overall_mean: float

def to_brightness_array(matrix: Sequence[Sequence[Optional[float]]]) -> np.ndarray:
    """
    Convert a row-major brightness matrix to a float array.

    None entries and missing trailing entries of short rows become NaN.

    Args:
        matrix: Rows of cell means

    Returns:
        2D float array
    """
    rows = [list(row) if row is not None else [] for row in matrix]
    width = max((len(row) for row in rows), default=0)
    array = np.full((len(rows), width), np.nan, dtype=float)
    for r, row in enumerate(rows):
        for c, value in enumerate(row):
            if value is not None:
                array[r, c] = float(value)
    return array

def _valid_mean(values: np.ndarray) -> float:
    """Mean of the non-NaN entries, 0.0 when there are none."""
    valid = values[~np.isnan(values)]
    if valid.size == 0:
        return 0.0
    return float(valid.mean())

class GridAggregator:
    """
    Computes grid geometry and brightness aggregates.
    All means skip invalid (None/NaN) cells; an aggregate without valid cells is 0.
    """

    def __init__(self, transformer: Optional[CoordinateTransformer] = None):
        self.transformer = transformer or CoordinateTransformer()

    def compute_cell_coordinates(self, line_set: LineSet, dimensions: ImageDimensions) -> List[List[CellRect]]:
        """
        Compute the pixel rectangle of every cell.

        Args:
            line_set: Current lines
            dimensions: Image extents

        Returns:
            Row-major grid of rectangles
        """
        pixels = self.transformer.to_pixels(line_set, dimensions)
        xs, ys = pixels.vertical, pixels.horizontal

        return [
            [
                CellRect(x=xs[col], y=ys[row], width=xs[col + 1] - xs[col], height=ys[row + 1] - ys[row])
                for col in range(len(xs) - 1)
            ]
            for row in range(len(ys) - 1)
        ]

    def aggregate_rows(self, matrix: Sequence[Sequence[Optional[float]]]) -> List[float]:
        """Mean of the valid cells of each row."""
        array = to_brightness_array(matrix)
        return [_valid_mean(array[row, :]) for row in range(array.shape[0])]

    def aggregate_columns(self, matrix: Sequence[Sequence[Optional[float]]]) -> List[float]:
        """Mean of the valid cells of each column."""
        array = to_brightness_array(matrix)
        return [_valid_mean(array[:, col]) for col in range(array.shape[1])]

    def aggregate_overall(self, matrix: Sequence[Sequence[Optional[float]]]) -> float:
        """
        Mean of all valid cells of the flattened matrix.

        This is not the mean of the row means: rows with more invalid cells
        would otherwise weigh more per valid cell.
        """
        return _valid_mean(to_brightness_array(matrix).ravel())

    def summarize(self, matrix: Sequence[Sequence[Optional[float]]]) -> GridSummary:
        """Row, column and overall aggregates in one pass over the matrix."""
        return GridSummary(
            cell_means=[list(row) for row in matrix],
            row_means=self.aggregate_rows(matrix),
            col_means=self.aggregate_columns(matrix),
            overall_mean=self.aggregate_overall(matrix),
        )

    def aggregate_by_category(self, matrix: Sequence[Sequence[Optional[float]]],
                              selected_cells: Sequence[SelectedCell],
                              categories: Sequence[Category]) -> List[CategoryMeanResult]:
        """
        Aggregate the selected cells of each category.

        For every category: the mean over its valid cells, the number of member
        cells, the member cells, the mean of its cells in every row where it has
        cells, and the average of those row means. Cells outside the matrix (for
        example after the grid was resized) are skipped.

        Args:
            matrix: Row-major brightness matrix
            selected_cells: Cell to category assignments
            categories: Categories to aggregate, in output order

        Returns:
            One result per category
        """
        array = to_brightness_array(matrix)
        rows, cols = array.shape

        members: Dict[str, List[Tuple[int, int]]] = {category.id: [] for category in categories}
        skipped = 0
        for cell in selected_cells:
            if cell.category_id not in members:
                continue
            if not (0 <= cell.row < rows and 0 <= cell.col < cols):
                skipped += 1
                continue
            position = (cell.row, cell.col)
            if position not in members[cell.category_id]:
                members[cell.category_id].append(position)

        if skipped:
            logger.warning(f"Skipped {skipped} selected cells outside the {rows}x{cols} grid")

        results = []
        for category in categories:
            cells = sorted(members[category.id])
            if not cells:
                results.append(CategoryMeanResult(
                    category_id=category.id,
                    category_name=category.name,
                    color=category.color,
                ))
                continue

            values = np.array([array[r, c] for r, c in cells], dtype=float)

            row_means: List[Optional[float]] = []
            for row in sorted({r for r, _ in cells}):
                row_values = np.array([array[r, c] for r, c in cells if r == row], dtype=float)
                valid = row_values[~np.isnan(row_values)]
                row_means.append(float(valid.mean()) if valid.size else None)

            valid_row_means = [m for m in row_means if m is not None]
            row_means_average = float(np.mean(valid_row_means)) if valid_row_means else None

            results.append(CategoryMeanResult(
                category_id=category.id,
                category_name=category.name,
                color=category.color,
                mean=_valid_mean(values),
                cell_count=len(cells),
                cells=cells,
                row_means=row_means,
                row_means_average=row_means_average,
            ))

        return results

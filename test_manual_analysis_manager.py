"""
Tests for manual analysis orchestration against in-process service fakes
"""

from unittest.mock import Mock

import pytest

from grid_analysis.business.api_integration import CategorizedMeanResponse, ServerResult
from grid_analysis.core.coordinate_system import ImageDimensions, Line, LineSet
from grid_analysis.core.grid_aggregator import Category, CategoryMeanResult, SelectedCell
from grid_analysis.utils.error_handling import InvalidDimensions, LinesNotConfigured, ValidationError

from conftest import make_png_data_url

IMAGE_ID = 5
DIMS = ImageDimensions(100, 100)


@pytest.fixture
def sized(manager):
    """Manager with known dimensions for IMAGE_ID."""
    manager.store.set_dimensions(IMAGE_ID, DIMS)
    return manager


def test_load_original_image_captures_dimensions(manager, storage):
    storage.images[IMAGE_ID] = make_png_data_url(120, 40)

    data_url = manager.load_original_image(IMAGE_ID)

    assert data_url == storage.images[IMAGE_ID]
    assert manager.get_state(IMAGE_ID).dimensions == ImageDimensions(120, 40)

    storage.images[IMAGE_ID] = make_png_data_url(1, 1)
    assert manager.load_original_image(IMAGE_ID) == data_url


def test_load_blurred_image_is_cached(manager, gateway):
    gateway.get_blurred_image = Mock(return_value='data:image/png;base64,AAAA')

    assert manager.load_blurred_image(IMAGE_ID) == 'data:image/png;base64,AAAA'
    assert manager.load_blurred_image(IMAGE_ID) == 'data:image/png;base64,AAAA'
    gateway.get_blurred_image.assert_called_once_with(IMAGE_ID, 3, 0, 0)


def test_check_existing_result_absent(manager):
    assert manager.check_existing_result(IMAGE_ID) is None
    assert manager.get_state(IMAGE_ID).last_server_result is None
    assert manager.has_unsaved_changes(IMAGE_ID)


def test_check_existing_result_restores_lines(sized, gateway):
    gateway.existing_result = ServerResult(
        result_id=3, image_id=IMAGE_ID, vertical_lines=[0, 40, 100], horizontal_lines=[60],
        means=[[1.0, 2.0], [3.0, 4.0]],
    )
    callback = Mock()
    sized.add_callback('result_updated', callback)

    result = sized.check_existing_result(IMAGE_ID)

    state = sized.get_state(IMAGE_ID)
    assert state.last_server_result is result
    assert [line.relative_x for line in state.current_lines.vertical] == [0.4]
    assert [line.relative_y for line in state.current_lines.horizontal] == [0.6]
    assert state.dirty is False
    callback.assert_called_once_with(IMAGE_ID, result)


def test_initialize_default_lines_requires_dimensions(manager):
    with pytest.raises(InvalidDimensions):
        manager.initialize_default_lines(IMAGE_ID)


def test_initialize_default_lines(sized):
    line_set = sized.initialize_default_lines(IMAGE_ID)

    pixels = sized.transformer.to_interior_pixels(line_set, DIMS)
    assert pixels.vertical == (25, 50, 75)
    assert pixels.horizontal == (25, 50, 75)
    assert sized.has_unsaved_changes(IMAGE_ID)


def test_calculate_mean_lines_sends_interior_lines_only(sized, gateway):
    """Test that boundary lines never reach the service"""
    sized.update_lines(IMAGE_ID, LineSet(
        vertical=[Line('a', relative_x=0.0), Line('b', relative_x=0.3), Line('c', relative_x=1.0)],
        horizontal=[Line('d', relative_y=0.5)],
    ))

    result = sized.calculate_mean_lines(IMAGE_ID)

    assert gateway.mean_calls == [{'image_id': IMAGE_ID, 'vertical_lines': [30], 'horizontal_lines': [50]}]
    assert gateway.busy_during_call == [True]
    state = sized.get_state(IMAGE_ID)
    assert state.busy is False
    assert state.last_server_result is result
    assert result.means == [[10.0, 10.0], [10.0, 10.0]]
    assert (result.image_width, result.image_height) == (100, 100)


def test_dirty_after_compute_and_line_move(sized):
    """Test dirty before computing, clean after, and dirty once a line moves"""
    sized.initialize_default_lines(IMAGE_ID)
    assert sized.has_unsaved_changes(IMAGE_ID)

    sized.calculate_mean_lines(IMAGE_ID)
    assert not sized.has_unsaved_changes(IMAGE_ID)

    lines = sized.get_state(IMAGE_ID).current_lines
    moved = LineSet(
        horizontal=lines.horizontal,
        vertical=(Line('moved', relative_x=0.3),) + lines.vertical[1:],
    )
    sized.update_lines(IMAGE_ID, moved)
    assert sized.has_unsaved_changes(IMAGE_ID)


def test_calculate_mean_lines_preconditions(manager, sized):
    with pytest.raises(InvalidDimensions):
        manager.calculate_mean_lines(99)

    sized.update_lines(IMAGE_ID, LineSet(vertical=[Line('v', relative_x=0.5)]))
    with pytest.raises(LinesNotConfigured):
        sized.calculate_mean_lines(IMAGE_ID)


def test_calculate_categorized_mean(sized, gateway):
    sized.initialize_default_lines(IMAGE_ID)
    cells = [SelectedCell(0, 0, 'a')]
    categories = [Category('a', 'A', '#f00')]

    response = sized.calculate_categorized_mean(IMAGE_ID, cells, categories)

    call = gateway.categorized_calls[0]
    assert call['vertical_lines'] == [25, 50, 75]
    assert call['horizontal_lines'] == [25, 50, 75]
    assert call['selected_cells'] == cells
    assert response.category_results[0].cell_count == 1
    assert sized.get_state(IMAGE_ID).busy is False


def test_recalculate_all_means(sized, gateway):
    with pytest.raises(ValidationError):
        sized.recalculate_all_means(IMAGE_ID)

    sized.initialize_default_lines(IMAGE_ID)
    sized.calculate_mean_lines(IMAGE_ID)
    summary = sized.recalculate_all_means(IMAGE_ID)

    assert summary.row_means == [10.0] * 4
    assert summary.col_means == [10.0] * 4
    assert summary.overall_mean == 10.0


def test_aggregate_categories_locally(sized):
    sized.initialize_default_lines(IMAGE_ID)
    sized.calculate_mean_lines(IMAGE_ID)

    results = sized.aggregate_categories(
        IMAGE_ID, [SelectedCell(0, 0, 'a'), SelectedCell(9, 9, 'a')],
        [Category('a', 'A', '#f00'), Category('b', 'B', '#00f')]
    )

    assert results[0].cell_count == 1 and results[0].mean == 10.0
    assert results[1].cell_count == 0 and results[1].row_means == []


def test_cell_geometry_helpers(manager, sized):
    assert manager.get_cell_coordinates(99) == []
    assert manager.get_cell_dimensions(99) == {'y_block_size': 16, 'x_block_size': 18}

    sized.initialize_default_lines(IMAGE_ID)
    assert sized.get_cell_dimensions(IMAGE_ID) == {'y_block_size': 25, 'x_block_size': 25}
    coordinates = sized.get_cell_coordinates(IMAGE_ID)
    assert len(coordinates) == 4 and len(coordinates[0]) == 4
    assert sized.get_table_headers(IMAGE_ID) == {
        'row_headers': ['Row 1', 'Row 2', 'Row 3', 'Row 4'],
        'col_headers': ['Column 1', 'Column 2', 'Column 3', 'Column 4'],
    }


def test_cell_dimensions_round_halves_up(manager):
    manager.store.set_dimensions(IMAGE_ID, ImageDimensions(10, 10))
    manager.initialize_default_lines(IMAGE_ID)

    assert manager.get_cell_dimensions(IMAGE_ID) == {'y_block_size': 3, 'x_block_size': 3}


def test_restore_cell_selections(manager, gateway):
    assert manager.restore_cell_selections(IMAGE_ID) == {}

    gateway.categorized_result = CategorizedMeanResponse(
        success=True, message='', image_id=IMAGE_ID, result_id=1,
        category_results=[
            CategoryMeanResult(category_id='a', cells=[(0, 1), (2, 3)]),
            CategoryMeanResult(category_id='b', cells=[(1, 1)]),
        ],
    )
    assert manager.restore_cell_selections(IMAGE_ID) == {'0-1': 'a', '2-3': 'a', '1-1': 'b'}


def test_prepare_table_falls_back_without_dimensions(manager):
    layout = manager.prepare_table(IMAGE_ID)

    assert layout.success is False
    assert (layout.rows, layout.cols) == (4, 4)


def test_prepare_table_places_default_lines(sized):
    layout = sized.prepare_table(IMAGE_ID)

    assert layout.success is True
    assert (layout.rows, layout.cols) == (4, 4)
    assert layout.summary is None
    assert len(sized.get_state(IMAGE_ID).current_lines.vertical) == 3


def test_prepare_table_with_result(sized, gateway):
    sized.update_lines(IMAGE_ID, sized.transformer.to_relative([50], [50], DIMS))
    sized.calculate_mean_lines(IMAGE_ID)
    gateway.categorized_result = CategorizedMeanResponse(
        success=True, message='', image_id=IMAGE_ID, result_id=1,
        category_results=[CategoryMeanResult(category_id='a', cells=[(1, 1)])],
    )

    layout = sized.prepare_table(IMAGE_ID)

    assert (layout.rows, layout.cols) == (2, 2)
    assert layout.summary.overall_mean == 10.0
    assert layout.cell_selections == {'1-1': 'a'}


def test_failing_callback_does_not_abort(sized):
    sized.add_callback('lines_updated', Mock(side_effect=RuntimeError("listener broke")))
    sized.initialize_default_lines(IMAGE_ID)
    assert len(sized.get_state(IMAGE_ID).current_lines.horizontal) == 3


def test_clear(sized):
    sized.initialize_default_lines(IMAGE_ID)
    sized.clear(IMAGE_ID)
    assert IMAGE_ID not in sized.store

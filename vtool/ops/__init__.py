# vtool/ops/__init__.py
"""
Operations over signal groups, datasets and their arrays. Every operation
returns a new value; inputs are never modified.
"""

from .select import Selection, select_from_group, select_from_dataset, remove_from_group, remove_groups_except
from .mutate import (
    add_signal_to_group,
    replace_signal_in_group,
    try_replace_signal_in_group,
    replace_signal_in_dataset,
    try_replace_signal_in_dataset,
    replace_units,
    replace_description,
    add_name_layer,
    remove_name_layer,
    rename_layer,
)
from .concat import reconcile_units, concat_signal_groups, concat_datasets
from .merge import merge_signal_groups, merge_datasets
from .resample import resample_dataset, downsample_dataset, limit_time_range
from .mask import apply_mask, apply_index, location_mask
from .pad import pad_signals_to_length, pad_data_to_length
from .repair import RepeatInfo, remove_repeated_points, nan_fill_dataset
from .model import rebuild_dataset_from_model, build_dataset_from_model
from .timebase import (
    build_time_group,
    build_dataset_from_data,
    get_sample_time,
    convert_to_elapsed_time,
    convert_to_absolute_time,
    change_time_units,
)


__all__ = [
    # selection
    "Selection",
    "select_from_group",
    "select_from_dataset",
    "remove_from_group",
    "remove_groups_except",

    # mutation
    "add_signal_to_group",
    "replace_signal_in_group",
    "try_replace_signal_in_group",
    "replace_signal_in_dataset",
    "try_replace_signal_in_dataset",
    "replace_units",
    "replace_description",
    "add_name_layer",
    "remove_name_layer",
    "rename_layer",

    # concat / merge
    "reconcile_units",
    "concat_signal_groups",
    "concat_datasets",
    "merge_signal_groups",
    "merge_datasets",

    # resampling, masking, padding
    "resample_dataset",
    "downsample_dataset",
    "limit_time_range",
    "apply_mask",
    "apply_index",
    "location_mask",
    "pad_signals_to_length",
    "pad_data_to_length",

    # time-vector repair
    "RepeatInfo",
    "remove_repeated_points",
    "nan_fill_dataset",

    # model-based rebuilding
    "rebuild_dataset_from_model",
    "build_dataset_from_model",

    # time base
    "build_time_group",
    "build_dataset_from_data",
    "get_sample_time",
    "convert_to_elapsed_time",
    "convert_to_absolute_time",
    "change_time_units",
]

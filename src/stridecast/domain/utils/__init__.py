from ._control_path import ControlPathTable, create_path_builder

__all__ = [
    ControlPathTable.__name__,
    create_path_builder.__name__,
]

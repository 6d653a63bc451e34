"""Panda3D preview window for tuning shakes by eye."""

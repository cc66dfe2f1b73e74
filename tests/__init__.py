"""Tests for the scale_sync integration."""

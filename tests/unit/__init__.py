"""Unit tests for the Fleet Tracking System layers"""

"""
Core timelapse logic.

This module is framework-agnostic - it doesn't import boto3, FFmpeg
wrappers or touch the filesystem. This separation means we can test
window selection and key naming in isolation.
"""

"""Measurement fusion"""

"""Presentation boundary: reading broadcast and status notification"""

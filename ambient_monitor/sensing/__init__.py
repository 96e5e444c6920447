"""Sensor inputs: barometer, altitude model and audio device negotiation"""

"""Companion engine core"""

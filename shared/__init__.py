"""Shared configuration and logging for the automation engine"""

"""Modelos y errores de dominio."""

"""Unified command-line interface for cofrinho.

Usage:
    cofrinho login --guest
    cofrinho import extrato.csv
    cofrinho summary --month 2024-03
    cofrinho categories rename expense Lazer Diversão
    cofrinho scan-market nota.jpg --save
    cofrinho ask "Quanto gastei com Uber?"
    cofrinho serve [--port]
"""

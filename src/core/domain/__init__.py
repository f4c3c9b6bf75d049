"""Dominio de la auditoría NR.

- `identifier`: validación offline de identificadores (checksum).
- `models`: clientes, resultados por identificador y reportes de escritura.

Sin I/O: ni HTTP ni sistema de archivos.
"""

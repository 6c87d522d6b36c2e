"""
===============================================================================
TARJETA CRC — domain/__init__.py
===============================================================================

Módulo:
    Capa de Dominio (entidades, políticas puras, puertos)

Reglas:
    - Sin dependencias a infraestructura ni a pydantic.
    - Todo lo que está acá es determinístico y testeable sin storage.
===============================================================================
"""

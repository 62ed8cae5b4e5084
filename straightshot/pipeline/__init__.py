"""
Pipeline Module - Edge analysis

This module organizes POST /analyze into discrete stages:
- Request parsing: body -> VehicleSnapshot
- Model gateway: prompt + upstream provider call
- Coercion: schema completion and verdict/score consistency
- Orchestrator: rate limit -> cache -> single-flight -> gateway -> store

Usage:
    from straightshot.pipeline import AnalysisPipeline
    result = await AnalysisPipeline(app_state).run(snapshot, client_id)
"""

from .coercion import coerce, score_label, repair_verdict
from .model_gateway import ModelGateway, parse_model_json
from .orchestrator import AnalysisPipeline, PipelineResult
from .request_parser import parse_snapshot, client_identifier

__all__ = [
    'coerce',
    'score_label',
    'repair_verdict',
    'ModelGateway',
    'parse_model_json',
    'AnalysisPipeline',
    'PipelineResult',
    'parse_snapshot',
    'client_identifier',
]

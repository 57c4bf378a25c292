"""Pydantic response models for the HTTP service."""

from typing import Dict, List

from pydantic import BaseModel


class StatisticsModel(BaseModel):
    mean: float
    std_dev: float
    change_rate: float


class FeatureSetModel(BaseModel):
    mfcc: List[float]
    spectral_centroid: float
    spectral_rolloff: float
    spectral_flatness: float
    spectral_spread: float
    rms: float
    energy: float
    zcr: float
    loudness: float
    perceptual_spread: float
    perceptual_sharpness: float
    fundamental_freq: float
    pitch_range: float
    harmonics_count: float
    envelope: List[float]
    formants: List[float]
    duration: float
    effective_duration: float
    frame_count: int
    statistics: Dict[str, StatisticsModel]


class AnalysisResponse(BaseModel):
    sample_rate: float
    duration: float
    lufs: float
    peak_dbfs: float
    features: FeatureSetModel


class SimilarityDetailsModel(BaseModel):
    harmonics_match: float
    spectral_match: float
    envelope_match: float
    brightness_match: float
    formant_match: float
    mfcc_similarity: float
    pitch_match: float
    pitch_range_match: float
    energy_match: float
    loudness_match: float
    perceptual_match: float
    speed_match: float
    pause_match: float
    duration_ratio: float


class SimilarityReportModel(BaseModel):
    overall: float
    timbre: float
    acoustic: float
    rhythm: float
    details: SimilarityDetailsModel


class VerdictModel(BaseModel):
    level: str
    score: float
    strengths: List[str]
    weaknesses: List[str]


class CompareResponse(BaseModel):
    report: SimilarityReportModel
    percentages: Dict[str, int]
    verdict: VerdictModel

"""Statistical analysis for champion/candidate experiments.

Arms are compared on conversion rate (successes per impression) with a
pooled two-proportion z-test. The two-tailed p-value uses the Abramowitz &
Stegun 26.2.17 rational approximation of the normal tail, so results are
reproducible without scipy. Near p = 0.05 it agrees with an exact normal CDF
to about five decimal places.

A winner is declared only when all three gates pass:
- both arms have at least MIN_SAMPLE_SIZE impressions
- p < 1 - CONFIDENCE_LEVEL
- |relative improvement| >= EFFECT_SIZE_THRESHOLD
"""

import math

from .models import (
    ConfidenceInterval,
    Experiment,
    ExperimentAnalysis,
    ExperimentMetrics,
    Winner,
)

CONFIDENCE_LEVEL = 0.95
MIN_SAMPLE_SIZE = 30
EFFECT_SIZE_THRESHOLD = 0.05

# z critical values for two-sided intervals
_Z_CRITICAL: dict[float, float] = {
    0.95: 1.96,
    0.99: 2.576,
}
_Z_CRITICAL_DEFAULT = 1.645

# Abramowitz & Stegun 26.2.17 coefficients
_AS_P = 0.2316419
_AS_D = 0.3989423
_AS_B = (0.3193815, -0.3565638, 1.781478, -1.821256, 1.330274)


def conversion_rate(metrics: ExperimentMetrics) -> float:
    """Successes per impression (0 with no impressions)."""
    return metrics.conversion_rate


def average_latency(metrics: ExperimentMetrics) -> float:
    """Mean latency of successful generations."""
    return metrics.avg_latency


def average_quality(metrics: ExperimentMetrics) -> float:
    """Mean quality of successful generations."""
    return metrics.avg_quality


def average_feedback(metrics: ExperimentMetrics) -> float:
    """Mean user feedback."""
    return metrics.avg_feedback


def z_score(
    p_treatment: float,
    n_treatment: int,
    p_control: float,
    n_control: int,
) -> float:
    """Pooled two-proportion z statistic, positive when treatment is higher.

    Returns 0 when either sample is empty or the pooled proportion is
    degenerate (0 or 1).
    """
    if n_treatment == 0 or n_control == 0:
        return 0.0

    pooled = (p_treatment * n_treatment + p_control * n_control) / (
        n_treatment + n_control
    )
    if pooled <= 0 or pooled >= 1:
        return 0.0

    se = math.sqrt(pooled * (1 - pooled) * (1 / n_treatment + 1 / n_control))
    if se == 0:
        return 0.0

    return (p_treatment - p_control) / se


def p_value(z: float) -> float:
    """Two-tailed p-value for a standard normal statistic."""
    abs_z = abs(z)
    t = 1 / (1 + _AS_P * abs_z)
    d = _AS_D * math.exp(-abs_z * abs_z / 2)
    b1, b2, b3, b4, b5 = _AS_B
    one_tail = d * t * (b1 + t * (b2 + t * (b3 + t * (b4 + t * b5))))
    return 2 * one_tail


def confidence_interval(
    p: float,
    n: int,
    confidence: float = 0.95,
) -> ConfidenceInterval:
    """Wald interval for a proportion, clamped to [0, 1]."""
    if n == 0:
        return ConfidenceInterval(lower=0.0, upper=0.0)

    z = _Z_CRITICAL.get(confidence, _Z_CRITICAL_DEFAULT)
    se = math.sqrt(p * (1 - p) / n)
    return ConfidenceInterval(
        lower=max(0.0, p - z * se),
        upper=min(1.0, p + z * se),
    )


def relative_change(baseline: float, value: float) -> float:
    """Relative change of value over baseline (0 when baseline is 0)."""
    if baseline > 0:
        return (value - baseline) / baseline
    return 0.0


def analyze_experiment(experiment: Experiment) -> ExperimentAnalysis:
    """Compare the two arms of an experiment and pick a winner.

    Args:
        experiment: Experiment whose per-arm counters are analyzed.

    Returns:
        Full analysis; winner is None unless every decision gate passes.
    """
    control = experiment.control_metrics
    treatment = experiment.treatment_metrics

    control_rate = conversion_rate(control)
    treatment_rate = conversion_rate(treatment)

    z = z_score(
        treatment_rate, treatment.impressions, control_rate, control.impressions
    )
    p = p_value(z)

    if control_rate > 0:
        improvement = (treatment_rate - control_rate) / control_rate
    else:
        improvement = 1.0 if treatment_rate > 0 else 0.0

    control_quality = average_quality(control)
    treatment_quality = average_quality(treatment)
    control_latency = average_latency(control)
    treatment_latency = average_latency(treatment)

    alpha = 1 - CONFIDENCE_LEVEL
    is_significant = p < alpha
    has_sufficient_samples = (
        control.impressions >= MIN_SAMPLE_SIZE
        and treatment.impressions >= MIN_SAMPLE_SIZE
    )
    has_minimum_effect = abs(improvement) >= EFFECT_SIZE_THRESHOLD

    winner: Winner | None = None
    if has_sufficient_samples and is_significant and has_minimum_effect:
        if treatment_rate > control_rate:
            winner = Winner.TREATMENT
            reason = (
                f"Treatment outperforms control by {improvement * 100:.1f}% "
                f"(p={p:.4f})"
            )
        else:
            winner = Winner.CONTROL
            reason = (
                f"Control outperforms treatment by {abs(improvement) * 100:.1f}% "
                f"(p={p:.4f})"
            )
    elif not has_sufficient_samples:
        reason = (
            f"Insufficient samples (control: {control.impressions}, "
            f"treatment: {treatment.impressions}, required: {MIN_SAMPLE_SIZE})"
        )
    elif not is_significant:
        reason = f"Not statistically significant (p={p:.4f}, required: <{alpha:.2f})"
    else:
        reason = (
            f"Effect size too small ({abs(improvement) * 100:.1f}%, "
            f"required: {EFFECT_SIZE_THRESHOLD * 100:.0f}%)"
        )

    winner_variant_id = None
    if winner == Winner.TREATMENT:
        winner_variant_id = experiment.treatment_variant_id
    elif winner == Winner.CONTROL:
        winner_variant_id = experiment.control_variant_id

    return ExperimentAnalysis(
        control_samples=control.impressions,
        treatment_samples=treatment.impressions,
        total_samples=control.impressions + treatment.impressions,
        control_success_rate=control_rate,
        treatment_success_rate=treatment_rate,
        relative_improvement=improvement,
        control_avg_quality=control_quality,
        treatment_avg_quality=treatment_quality,
        quality_improvement=relative_change(control_quality, treatment_quality),
        control_avg_latency=control_latency,
        treatment_avg_latency=treatment_latency,
        latency_change=relative_change(control_latency, treatment_latency),
        z_score=z,
        p_value=p,
        control_ci=confidence_interval(control_rate, control.impressions),
        treatment_ci=confidence_interval(treatment_rate, treatment.impressions),
        is_significant=is_significant,
        has_sufficient_samples=has_sufficient_samples,
        has_minimum_effect=has_minimum_effect,
        confidence=1 - p,
        winner=winner,
        winner_variant_id=winner_variant_id,
        winner_reason=reason,
    )

"""
Hearing loss classification and recommendations.

The manual path averages the thresholds of one ear and maps the mean onto
half-open severity bands. An optional model can be plugged in; whenever it is
unavailable, ineligible or fails, the manual path is used, so classification
always produces a result.
"""
# Standard library imports
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Protocol, Tuple, Union

# Local imports
from ..models import Ear, TestSession
from ..utils.defaults import STANDARD_FREQUENCIES, MODEL_MIN_FREQUENCIES

logger = logging.getLogger(__name__)

LevelsByFrequency = Mapping[int, float]

ASYMMETRY_NOTE = ("Your hearing levels differ between ears. "
                  "This asymmetry should be evaluated by a professional.")
RETEST_NOTE = "Remember to retest your hearing periodically to track any changes."


class HearingClassification(Enum):
    NORMAL = 'normal'
    MILD = 'mild'
    MODERATE = 'moderate'
    MODERATELY_SEVERE = 'moderatelySevere'
    SEVERE = 'severe'
    PROFOUND = 'profound'

    @property
    def severity(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, HearingClassification):
            return NotImplemented
        return self.severity < other.severity

    def __le__(self, other):
        if not isinstance(other, HearingClassification):
            return NotImplemented
        return self.severity <= other.severity

    def __gt__(self, other):
        if not isinstance(other, HearingClassification):
            return NotImplemented
        return self.severity > other.severity

    def __ge__(self, other):
        if not isinstance(other, HearingClassification):
            return NotImplemented
        return self.severity >= other.severity

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def recommendations(self) -> Tuple[str, ...]:
        return _RECOMMENDATIONS[self]


_SEVERITY_ORDER = list(HearingClassification)

_DISPLAY_NAMES = {
    HearingClassification.NORMAL: "Normal Hearing",
    HearingClassification.MILD: "Mild Hearing Loss",
    HearingClassification.MODERATE: "Moderate Hearing Loss",
    HearingClassification.MODERATELY_SEVERE: "Moderately Severe Hearing Loss",
    HearingClassification.SEVERE: "Severe Hearing Loss",
    HearingClassification.PROFOUND: "Profound Hearing Loss",
}

_DESCRIPTIONS = {
    HearingClassification.NORMAL:
        "You can hear soft sounds across most frequencies.",
    HearingClassification.MILD:
        "You may have difficulty hearing soft sounds and understanding speech in noisy environments.",
    HearingClassification.MODERATE:
        "You likely have difficulty following conversations without hearing aids.",
    HearingClassification.MODERATELY_SEVERE:
        "You have difficulty with normal conversations and may miss significant speech elements "
        "without amplification.",
    HearingClassification.SEVERE:
        "You may hear almost no speech when a person talks at a normal level.",
    HearingClassification.PROFOUND:
        "You may not hear loud speech or sounds without powerful hearing aids or a cochlear implant.",
}

_SIGNIFICANT_LOSS_RECOMMENDATIONS = (
    "You have significant hearing loss that requires professional attention.",
    "Please consult with an audiologist as soon as possible.",
    "Hearing aids or other assistive devices may significantly improve your quality of life.",
    "Consider learning about additional communication strategies like speech reading.",
)

_RECOMMENDATIONS = {
    HearingClassification.NORMAL: (
        "Your hearing appears to be within normal range.",
        "Continue to protect your hearing by avoiding prolonged exposure to loud noises.",
        "Get your hearing checked annually as part of your health routine.",
    ),
    HearingClassification.MILD: (
        "You have mild hearing loss in one or both ears.",
        "Consider scheduling a follow-up appointment with an audiologist.",
        "Avoid noisy environments when possible.",
        "Consider using assistive listening devices in challenging situations.",
    ),
    HearingClassification.MODERATE: (
        "You have moderate hearing loss that may impact your daily communication.",
        "We recommend consulting with an audiologist to discuss hearing aid options.",
        "Consider strategies for better communication in noisy environments.",
        "Look into hearing assistive technologies for phones and other devices.",
    ),
    HearingClassification.MODERATELY_SEVERE: (
        "You have moderately severe hearing loss that significantly impacts daily communication.",
        "Hearing aids are strongly recommended for this level of hearing loss.",
        "Consider additional assistive listening devices for specific situations.",
        "Learn communication strategies to maximize understanding in conversations.",
    ),
    HearingClassification.SEVERE: _SIGNIFICANT_LOSS_RECOMMENDATIONS,
    HearingClassification.PROFOUND: _SIGNIFICANT_LOSS_RECOMMENDATIONS,
}

# Lower edge (inclusive) of each band; a band ends where the next one starts
SEVERITY_BANDS = (
    (25.0, HearingClassification.MILD),
    (40.0, HearingClassification.MODERATE),
    (55.0, HearingClassification.MODERATELY_SEVERE),
    (70.0, HearingClassification.SEVERE),
    (90.0, HearingClassification.PROFOUND),
)


def classify_mean(mean_db: float) -> HearingClassification:
    """Map an average hearing level onto the half-open severity bands."""
    classification = HearingClassification.NORMAL
    for lower_edge, band in SEVERITY_BANDS:
        if mean_db >= lower_edge:
            classification = band
        else:
            break
    return classification


def classify_levels(levels: LevelsByFrequency) -> HearingClassification:
    """
    Classify one ear from its thresholds.

    An ear without any threshold is reported as normal; this is a screening
    default, not evidence of normal hearing.
    """
    values = [float(v) for v in levels.values()]
    if not values:
        logger.warning("No thresholds to classify, defaulting to %s",
                       HearingClassification.NORMAL.display_name)
        return HearingClassification.NORMAL
    return classify_mean(sum(values) / len(values))


def worse_classification(right: HearingClassification,
                         left: HearingClassification) -> HearingClassification:
    return left if left > right else right


def generate_recommendations(right: HearingClassification,
                             left: HearingClassification) -> List[str]:
    """
    Recommendations for the worse ear plus asymmetry and retest notes.

    Returns:
        list: Ordered, duplicate-free recommendation texts.
    """
    candidates = list(worse_classification(right, left).recommendations)
    if right is not left:
        candidates.append(ASYMMETRY_NOTE)
    candidates.append(RETEST_NOTE)
    return list(dict.fromkeys(candidates))


class HearingModel(Protocol):
    """Optional learned classifier with the same contract as the manual path."""

    def classify(self, right_levels: LevelsByFrequency,
                 left_levels: LevelsByFrequency) -> Optional[Tuple[HearingClassification, HearingClassification]]:
        ...


def model_eligible(right_levels: LevelsByFrequency, left_levels: LevelsByFrequency,
                   min_frequencies: int = MODEL_MIN_FREQUENCIES) -> bool:
    """Both ears need thresholds at enough of the standard frequencies."""
    def covered(levels):
        return sum(1 for f in STANDARD_FREQUENCIES if f in levels)
    return covered(right_levels) >= min_frequencies and covered(left_levels) >= min_frequencies


@dataclass(frozen=True)
class HearingResult:
    right_levels: Dict[int, float]
    left_levels: Dict[int, float]
    right_classification: HearingClassification
    left_classification: HearingClassification
    recommendations: Tuple[str, ...]
    method: str = 'manual'

    @property
    def overall_classification(self) -> HearingClassification:
        return worse_classification(self.right_classification, self.left_classification)

    def classification_for(self, ear: Ear) -> HearingClassification:
        return self.right_classification if ear is Ear.RIGHT else self.left_classification

    def to_dict(self) -> dict:
        return {
            'right_levels': {int(f): float(v) for f, v in self.right_levels.items()},
            'left_levels': {int(f): float(v) for f, v in self.left_levels.items()},
            'right_classification': self.right_classification.value,
            'left_classification': self.left_classification.value,
            'overall_classification': self.overall_classification.value,
            'recommendations': list(self.recommendations),
            'method': self.method,
        }


class ResponseClassifier:
    """
    Classify a completed session (or raw per-ear thresholds).

    Args:
        model: Optional HearingModel consulted when both ears have enough data.
    """

    def __init__(self, model: Optional[HearingModel] = None):
        self.model = model

    def classify(self, source: Union[TestSession, Tuple[LevelsByFrequency, LevelsByFrequency]]) -> HearingResult:
        if isinstance(source, TestSession):
            right_levels = source.thresholds_for(Ear.RIGHT)
            left_levels = source.thresholds_for(Ear.LEFT)
        else:
            right_levels, left_levels = source
        right_levels = {int(f): float(v) for f, v in right_levels.items()}
        left_levels = {int(f): float(v) for f, v in left_levels.items()}

        method = 'manual'
        classes = self._classify_with_model(right_levels, left_levels)
        if classes is None:
            classes = (classify_levels(right_levels), classify_levels(left_levels))
        else:
            method = 'model'
        right, left = classes

        return HearingResult(
            right_levels=right_levels,
            left_levels=left_levels,
            right_classification=right,
            left_classification=left,
            recommendations=tuple(generate_recommendations(right, left)),
            method=method,
        )

    def _classify_with_model(self, right_levels, left_levels):
        if self.model is None:
            return None
        if not model_eligible(right_levels, left_levels):
            logger.info("Not enough thresholds for the model, using manual classification")
            return None
        try:
            result = self.model.classify(dict(right_levels), dict(left_levels))
        except Exception as e:
            logger.warning("Hearing model failed (%s), using manual classification", e)
            return None
        if result is None:
            logger.warning("Hearing model returned no classification, using manual classification")
            return None
        try:
            right, left = result
        except (TypeError, ValueError):
            right = left = None
        if not isinstance(right, HearingClassification) or not isinstance(left, HearingClassification):
            logger.warning("Invalid hearing model output %r, using manual classification", result)
            return None
        return right, left

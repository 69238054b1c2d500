"""Offline question generation that never comes back empty."""
import logging
import random
import re
from typing import Optional

from cuet_prep.errors import GenerationError
from cuet_prep.models import Question
from cuet_prep.shuffle import build_options
from cuet_prep.validation import question_problems

logger = logging.getLogger(__name__)

SYLLABUS_MAP = {
    "Physics": {
        "Electrostatics": {
            "concepts": ["Coulomb Law", "Electric Field", "Electric Potential", "Gauss Law", "Capacitance"],
            "question_types": ["numerical", "conceptual", "formula-based"],
        },
        "Current Electricity": {
            "concepts": ["Ohm Law", "Resistance", "Power", "Kirchhoff Laws", "EMF"],
            "question_types": ["circuit-analysis", "numerical", "conceptual"],
        },
        "Magnetism": {
            "concepts": ["Magnetic Field", "Magnetic Force", "Electromagnetic Induction", "Faraday Law"],
            "question_types": ["numerical", "conceptual", "application"],
        },
    },
    "Chemistry": {
        "Chemical Bonding": {
            "concepts": ["Ionic Bond", "Covalent Bond", "Hybridization", "VSEPR Theory", "Molecular Geometry"],
            "question_types": ["structure-prediction", "bond-type", "geometry"],
        },
        "Thermodynamics": {
            "concepts": ["First Law", "Enthalpy", "Entropy", "Gibbs Energy", "Spontaneity"],
            "question_types": ["numerical", "conceptual", "prediction"],
        },
        "Equilibrium": {
            "concepts": ["Chemical Equilibrium", "Le Chatelier Principle", "Equilibrium Constant", "Acid-Base"],
            "question_types": ["calculation", "prediction", "conceptual"],
        },
    },
    "Mathematics": {
        "Limits and Derivatives": {
            "concepts": ["Limit Definition", "Derivative Rules", "Chain Rule", "Applications"],
            "question_types": ["calculation", "application", "proof"],
        },
        "Integrals": {
            "concepts": ["Indefinite Integral", "Definite Integral", "Applications", "Integration Techniques"],
            "question_types": ["calculation", "application", "area-volume"],
        },
    },
    "English": {
        "Reading Comprehension": {
            "concepts": ["Main Idea", "Inference", "Vocabulary", "Tone", "Author Purpose"],
            "question_types": ["factual", "inferential", "vocabulary", "tone-analysis"],
        },
        "Grammar": {
            "concepts": ["Tenses", "Voice", "Narration", "Parts of Speech", "Sentence Structure"],
            "question_types": ["error-correction", "transformation", "completion"],
        },
    },
    "General Test": {
        "General Knowledge": {
            "concepts": ["History", "Geography", "Polity", "Economics", "Current Affairs"],
            "question_types": ["factual", "analytical", "current-affairs"],
        },
        "Logical Reasoning": {
            "concepts": ["Syllogism", "Coding-Decoding", "Blood Relations", "Direction Sense"],
            "question_types": ["logical", "analytical", "pattern-recognition"],
        },
    },
}

# Hand-authored question per (subject, chapter, concept)
CHAPTER_TEMPLATES = {
    "Physics": {
        "Electrostatics": {
            "Coulomb Law": {
                "question": "Two point charges of +2μC and +3μC are placed 30 cm apart in air. The force between them is:",
                "correct": "0.6 N",
                "distractors": ["0.06 N", "6 N", "60 N"],
                "explanation": "Using Coulomb's law: F = kq₁q₂/r² = (9×10⁹)(2×10⁻⁶)(3×10⁻⁶)/(0.3)² = 0.6 N",
            },
            "Electric Field": {
                "question": "The electric field at a distance of 10 cm from a point charge of 5μC is:",
                "correct": "4.5×10⁶ N/C",
                "distractors": ["4.5×10⁵ N/C", "4.5×10⁴ N/C", "4.5×10³ N/C"],
                "explanation": "E = kq/r² = (9×10⁹)(5×10⁻⁶)/(0.1)² = 4.5×10⁶ N/C",
            },
        },
        "Current Electricity": {
            "Ohm Law": {
                "question": "A conductor has a resistance of 5Ω. When a potential difference of 20V is applied, the current is:",
                "correct": "4 A",
                "distractors": ["25 A", "100 A", "0.25 A"],
                "explanation": "Using Ohm's law: I = V/R = 20/5 = 4 A",
            },
        },
    },
    "Chemistry": {
        "Chemical Bonding": {
            "Ionic Bond": {
                "question": "Which of the following compounds has the highest ionic character?",
                "correct": "NaF",
                "distractors": ["NaCl", "NaBr", "NaI"],
                "explanation": "Ionic character increases with electronegativity difference. F has the highest electronegativity, so NaF has the highest ionic character.",
            },
            "Hybridization": {
                "question": "The hybridization of carbon in methane (CH₄) is:",
                "correct": "sp³",
                "distractors": ["sp²", "sp", "dsp²"],
                "explanation": "Carbon in CH₄ forms 4 sigma bonds, requiring sp³ hybridization for tetrahedral geometry.",
            },
        },
    },
    "Mathematics": {
        "Limits and Derivatives": {
            "Limit Definition": {
                "question": "The value of lim(x→0) (sin x)/x is:",
                "correct": "1",
                "distractors": ["0", "∞", "Does not exist"],
                "explanation": "This is a standard limit: lim(x→0) (sin x)/x = 1",
            },
            "Derivative Rules": {
                "question": "If f(x) = x³ + 2x² - 5x + 1, then f'(x) is:",
                "correct": "3x² + 4x - 5",
                "distractors": ["3x² + 4x + 5", "x³ + 4x - 5", "3x + 4"],
                "explanation": "Using the power rule: d/dx(x³) = 3x², d/dx(2x²) = 4x, d/dx(-5x) = -5, d/dx(1) = 0",
            },
        },
    },
}

# Concept-agnostic questions per chapter
REALISTIC_TEMPLATES = {
    "Physics": {
        "Electrostatics": [
            {
                "question": "The SI unit of electric field intensity is equivalent to:",
                "correct": "N/C",
                "distractors": ["C/N", "J/C", "V·m"],
                "explanation": "Electric field is force per unit charge, measured in newtons per coulomb.",
            },
            {
                "question": "According to Coulomb's law, the force between charges is proportional to:",
                "correct": "1/r²",
                "distractors": ["1/r", "r²", "r"],
                "explanation": "Coulomb's law is an inverse square law in the separation r.",
            },
        ],
        "Current Electricity": [
            {
                "question": "The resistance of a wire is directly proportional to:",
                "correct": "Length of wire",
                "distractors": ["Cross-sectional area", "Square of length", "Current through wire"],
                "explanation": "R = ρL/A, so resistance grows linearly with length.",
            },
            {
                "question": "In a series circuit, the current is:",
                "correct": "Same in all components",
                "distractors": ["Different in each component", "Maximum in first component", "Zero in some components"],
                "explanation": "A series circuit has a single path, so the same current flows through every component.",
            },
        ],
    },
    "Chemistry": {
        "Chemical Bonding": [
            {
                "question": "The bond angle in ammonia (NH₃) is approximately:",
                "correct": "107°",
                "distractors": ["109.5°", "120°", "90°"],
                "explanation": "The lone pair on nitrogen compresses the tetrahedral angle to about 107°.",
            },
            {
                "question": "Which type of hybridization results in trigonal planar geometry?",
                "correct": "sp²",
                "distractors": ["sp³", "sp", "dsp²"],
                "explanation": "Three sp² hybrid orbitals lie in a plane at 120° to each other.",
            },
        ],
    },
    "Mathematics": {
        "Limits and Derivatives": [
            {
                "question": "The derivative of ln(x) with respect to x is:",
                "correct": "1/x",
                "distractors": ["ln(x)", "x", "e^x"],
                "explanation": "d/dx(ln x) = 1/x for x > 0.",
            },
            {
                "question": "If f(x) = sin(x), then f'(π/2) equals:",
                "correct": "0",
                "distractors": ["1", "-1", "π/2"],
                "explanation": "f'(x) = cos x and cos(π/2) = 0.",
            },
        ],
    },
}

FALLBACK_QUESTIONS = {
    "Physics": {
        "Electrostatics": [
            {
                "question": "The SI unit of electric field intensity is:",
                "correct": "N/C",
                "distractors": ["C/N", "N·C", "C·N"],
                "explanation": "Electric field intensity is force per unit charge, so the unit is N/C.",
            },
            {
                "question": "Coulomb's law is valid for:",
                "correct": "Point charges in vacuum",
                "distractors": ["All types of charges", "Moving charges only", "Large charged bodies"],
                "explanation": "Coulomb's law applies to point charges in vacuum or air.",
            },
            {
                "question": "The electric potential at infinity is taken as:",
                "correct": "Zero",
                "distractors": ["Unity", "Infinity", "Depends on charge"],
                "explanation": "By convention, electric potential at infinity is taken as the zero reference.",
            },
        ],
        "Current Electricity": [
            {
                "question": "Ohm's law is applicable to:",
                "correct": "Metallic conductors at constant temperature",
                "distractors": ["All materials", "Semiconductors only", "Insulators"],
                "explanation": "Ohm's law applies to ohmic conductors at constant temperature.",
            },
            {
                "question": "The resistance of a conductor depends on:",
                "correct": "Length, area, and material",
                "distractors": ["Current only", "Voltage only", "Power only"],
                "explanation": "Resistance R = ρL/A depends on resistivity, length and cross-sectional area.",
            },
            {
                "question": "The power dissipated in a resistor is given by:",
                "correct": "I²R",
                "distractors": ["IR", "I/R", "R/I"],
                "explanation": "Power P = VI = I²R = V²/R for a resistor.",
            },
        ],
    },
    "Chemistry": {
        "Chemical Bonding": [
            {
                "question": "The type of hybridization in BF₃ is:",
                "correct": "sp²",
                "distractors": ["sp³", "sp", "dsp²"],
                "explanation": "BF₃ has trigonal planar geometry with sp² hybridization.",
            },
            {
                "question": "Ionic character is maximum in:",
                "correct": "CsF",
                "distractors": ["CsCl", "CsBr", "CsI"],
                "explanation": "Ionic character increases with electronegativity difference; Cs-F has the largest.",
            },
            {
                "question": "The geometry of NH₃ molecule is:",
                "correct": "Pyramidal",
                "distractors": ["Tetrahedral", "Planar", "Linear"],
                "explanation": "NH₃ has pyramidal geometry due to the lone pair on nitrogen.",
            },
        ],
        "Thermodynamics": [
            {
                "question": "The first law of thermodynamics is:",
                "correct": "ΔU = q + w",
                "distractors": ["ΔU = q - w", "ΔU = q × w", "ΔU = q / w"],
                "explanation": "The change in internal energy equals heat added plus work done on the system.",
            },
            {
                "question": "An adiabatic process is characterized by:",
                "correct": "q = 0",
                "distractors": ["w = 0", "ΔU = 0", "ΔH = 0"],
                "explanation": "In an adiabatic process no heat is exchanged, so q = 0.",
            },
            {
                "question": "The enthalpy of formation of elements is:",
                "correct": "Zero",
                "distractors": ["Positive", "Negative", "Variable"],
                "explanation": "By definition, the enthalpy of formation of an element in its standard state is zero.",
            },
        ],
    },
    "Mathematics": {
        "Limits and Derivatives": [
            {
                "question": "The derivative of sin x is:",
                "correct": "cos x",
                "distractors": ["-cos x", "sin x", "-sin x"],
                "explanation": "The derivative of sin x with respect to x is cos x.",
            },
            {
                "question": "The limit of (1-cos x)/x² as x→0 is:",
                "correct": "1/2",
                "distractors": ["0", "1", "∞"],
                "explanation": "Using L'Hôpital's rule or the Taylor series, lim(x→0) (1-cos x)/x² = 1/2.",
            },
            {
                "question": "If y = eˣ, then dy/dx is:",
                "correct": "eˣ",
                "distractors": ["xeˣ", "e", "1"],
                "explanation": "The derivative of eˣ is eˣ itself.",
            },
        ],
        "Integrals": [
            {
                "question": "The integral of 1/x dx is:",
                "correct": "ln|x| + C",
                "distractors": ["x + C", "1/x² + C", "e^x + C"],
                "explanation": "∫(1/x)dx = ln|x| + C.",
            },
            {
                "question": "The value of ∫₀¹ x dx is:",
                "correct": "1/2",
                "distractors": ["1", "0", "2"],
                "explanation": "∫₀¹ x dx = [x²/2]₀¹ = 1/2.",
            },
            {
                "question": "Integration by parts is used when integrating a:",
                "correct": "Product of two functions",
                "distractors": ["Sum of functions", "Rational functions", "Trigonometric functions"],
                "explanation": "Integration by parts handles integrals of products: ∫u dv = uv - ∫v du.",
            },
        ],
    },
}

EMERGENCY_STEMS = {
    "Physics": [
        "In {topic}, when analyzing {aspect}, which property is most significant?",
        "According to {topic} theory, {aspect} are best characterized by:",
        "When applying {topic} concepts to {aspect}, the key idea is:",
        "In experimental {topic}, the most critical factor behind {aspect} is:",
        "The mathematical formulation of {topic} shows that {aspect} depend on:",
    ],
    "Chemistry": [
        "In {topic}, the molecular behavior behind {aspect} is primarily governed by:",
        "According to {topic} principles, {aspect} involve:",
        "The thermodynamic view of {topic} suggests that {aspect} depend on:",
        "In {topic} processes, {aspect} are most influenced by:",
        "The equilibrium picture of {topic} characterizes {aspect} through:",
    ],
    "Mathematics": [
        "In {topic}, the result underlying {aspect} is:",
        "According to {topic} principles, solving {aspect} involves:",
        "The graphical view of {topic} applied to {aspect} shows:",
        "In {topic} applications, {aspect} hinge on:",
        "The analytical approach to {aspect} in {topic} requires:",
    ],
    "English": [
        "In a passage on {topic}, a question about {aspect} mainly tests:",
        "When reading for {aspect} in {topic}, the best guide is:",
        "The author's handling of {aspect} in {topic} is best judged by:",
        "For {aspect} in {topic}, the strongest answer relies on:",
        "In {topic} questions on {aspect}, the key skill is:",
    ],
}
GENERIC_STEMS = [
    "Which of the following best describes {aspect} in {topic}?",
    "In {topic}, {aspect} are best understood through:",
    "The process underlying {aspect} in {topic} is:",
    "When solving {aspect} in {topic}, the first step is to identify:",
    "Questions on {aspect} in {topic} are mainly decided by:",
]
EMERGENCY_ASPECTS = [
    "the fundamental principles",
    "the standard definitions",
    "the experimental observations",
    "the numerical problems",
    "the real-world applications",
    "the graphical interpretations",
]

EMERGENCY_OPTION_SETS = {
    "Physics": [
        ["Electric field strength", "Magnetic field intensity", "Gravitational force", "Nuclear force"],
        ["Coulomb force law", "Newton's law", "Faraday's law", "Ohm's law"],
        ["Inverse square relationship", "Direct proportionality", "Exponential decay", "Linear relationship"],
        ["Permittivity of medium", "Permeability of space", "Conductivity factor", "Resistance coefficient"],
        ["Ohmic resistance", "Capacitive reactance", "Inductive impedance", "Magnetic reluctance"],
        ["Potential difference", "Electric flux", "Magnetic flux", "Current density"],
    ],
    "Chemistry": [
        ["Molecular orbital theory", "Valence bond theory", "Crystal field theory", "Ligand field theory"],
        ["Activation energy", "Bond dissociation energy", "Lattice energy", "Ionization energy"],
        ["Le Chatelier's principle", "Hund's rule", "Pauli exclusion", "Aufbau principle"],
        ["Thermodynamic stability", "Kinetic stability", "Electronic stability", "Nuclear stability"],
    ],
    "Mathematics": [
        ["Continuity condition", "Differentiability", "Integrability", "Convergence"],
        ["Maximum value", "Minimum value", "Inflection point", "Asymptotic behavior"],
        ["Chain rule", "Product rule", "Quotient rule", "Integration by parts"],
        ["Fundamental theorem", "Mean value theorem", "Intermediate value theorem", "Rolle's theorem"],
    ],
    "English": [
        ["Central idea of the passage", "A minor supporting detail", "The author's biography", "An unrelated digression"],
        ["Meaning in context", "Literal dictionary sense", "Opposite meaning", "Etymology of the word"],
        ["Inference drawn from evidence", "Personal opinion", "Unstated assumption", "Popular belief"],
        ["Subject-verb agreement", "Tense consistency", "Pronoun reference", "Article usage"],
    ],
    "General Test": [
        ["Constitutional provision", "Customary practice", "Executive order", "Judicial precedent"],
        ["Logical deduction", "Inductive generalization", "Circular reasoning", "Unsupported assumption"],
        ["Proportional reasoning", "Rough estimation", "Trial and error", "Visual approximation"],
        ["Primary source", "Secondary source", "Hearsay", "Speculation"],
    ],
}
GENERIC_OPTION_SETS = [
    ["Underlying principle", "Surface feature", "Unrelated factor", "Coincidental pattern"],
    ["Cause and effect", "Random variation", "Measurement error", "Naming convention"],
    ["Core definition", "Historical anecdote", "Popular misconception", "Arbitrary rule"],
]


def _lookup(mapping: dict, key: str):
    """Case-insensitive dict lookup; returns None when absent."""
    wanted = key.lower()
    for name, value in mapping.items():
        if name.lower() == wanted:
            return value
    return None


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")


class QuestionGenerator:
    """Builds syllabus-accurate questions from templates, with an optional remote source."""

    def __init__(self, remote=None, rng: Optional[random.Random] = None):
        self.remote = remote
        self.rng = rng or random.Random()

    def _build(self, subject: str, chapter: str, concept: str, data: dict,
               source: str, qid: str, question_type: str = "conceptual") -> Optional[Question]:
        options, correct_index = build_options(data["correct"], data["distractors"], self.rng)
        question = Question(
            id=qid,
            subject=subject,
            chapter=chapter,
            concept=concept,
            text=data["question"],
            options=options,
            correct_index=correct_index,
            explanation=data["explanation"],
            source=source,
            question_type=question_type,
        )
        problems = question_problems(question)
        if problems:
            logger.warning("Rejected generated question %s: %s", qid, "; ".join(problems))
            return None
        return question

    def syllabus(self, subject: str, chapter: str) -> Optional[dict]:
        chapters = _lookup(SYLLABUS_MAP, subject) or {}
        return _lookup(chapters, chapter)

    def _template_questions(self, subject: str, chapter: str, count: int) -> list[Question]:
        syllabus = self.syllabus(subject, chapter)
        templates = _lookup(_lookup(CHAPTER_TEMPLATES, subject) or {}, chapter) or {}
        if not syllabus:
            return []
        questions = []
        concepts, types = syllabus["concepts"], syllabus["question_types"]
        for i in range(count):
            concept = concepts[i % len(concepts)]
            data = templates.get(concept)
            if data is None:
                continue
            qid = f"cuet_template_{_slug(subject)}_{_slug(chapter)}_{_slug(concept)}_{i}"
            q = self._build(subject, chapter, concept, data, "cuet_template", qid, types[i % len(types)])
            if q:
                questions.append(q)
        return questions

    def _chapter_bank(self, subject: str, chapter: str) -> list[Question]:
        questions = []
        for source, table in (("cuet_realistic", REALISTIC_TEMPLATES), ("cuet_fallback", FALLBACK_QUESTIONS)):
            entries = _lookup(_lookup(table, subject) or {}, chapter) or []
            for i, data in enumerate(entries):
                qid = f"{source}_{_slug(subject)}_{_slug(chapter)}_{i}"
                q = self._build(subject, chapter, chapter, data, source, qid)
                if q:
                    questions.append(q)
        return questions

    def emergency_question(self, subject: str, chapter: str, index: int,
                           topic: Optional[str] = None) -> Question:
        """Question ``index`` of the stem x aspect grid for a subject.

        Texts are distinct for the first len(stems) * len(aspects) indexes.
        """
        topic = topic or chapter
        stems = _lookup(EMERGENCY_STEMS, subject) or GENERIC_STEMS
        option_sets = _lookup(EMERGENCY_OPTION_SETS, subject) or GENERIC_OPTION_SETS
        stem = stems[index % len(stems)]
        aspect = EMERGENCY_ASPECTS[(index // len(stems)) % len(EMERGENCY_ASPECTS)]
        option_set = option_sets[index % len(option_sets)]
        data = {
            "question": stem.format(topic=topic, aspect=aspect),
            "correct": option_set[0],
            "distractors": option_set[1:],
            "explanation": f"This question tests {aspect} of {topic} in {subject}.",
        }
        qid = f"emergency_unique_{_slug(subject)}_{_slug(chapter)}_{_slug(topic)}_{index}"
        question = self._build(subject, chapter, topic, data, "emergency_unique", qid)
        if question is None:
            raise GenerationError(f"emergency template {index} for {subject} produced an invalid question")
        return question

    def emergency_capacity(self, subject: str) -> int:
        stems = _lookup(EMERGENCY_STEMS, subject) or GENERIC_STEMS
        return len(stems) * len(EMERGENCY_ASPECTS)

    def generate(self, subject: str, chapter: str, count: int) -> list[Question]:
        """Up to ``count`` distinct valid questions; at least one whenever count >= 1."""
        if count < 1:
            return []
        questions: list[Question] = []
        seen: set[str] = set()

        def take(candidates):
            for q in candidates:
                if len(questions) >= count:
                    return
                key = q.text.strip().lower()
                if key not in seen:
                    seen.add(key)
                    questions.append(q)

        take(self._template_questions(subject, chapter, count))
        take(self._chapter_bank(subject, chapter))
        index = 0
        while len(questions) < count and index < self.emergency_capacity(subject):
            take([self.emergency_question(subject, chapter, index)])
            index += 1

        logger.info("Generated %d template questions for %s - %s", len(questions), subject, chapter)
        return questions

    def generate_for_concept(self, subject: str, chapter: str, concept: str) -> Question:
        """One question on ``concept``, used as the base of a mistake variant."""
        templates = _lookup(_lookup(CHAPTER_TEMPLATES, subject) or {}, chapter) or {}
        data = _lookup(templates, concept)
        if data:
            qid = f"cuet_template_{_slug(subject)}_{_slug(chapter)}_{_slug(concept)}_0"
            q = self._build(subject, chapter, concept, data, "cuet_template", qid)
            if q:
                return q
        index = self.rng.randrange(self.emergency_capacity(subject))
        return self.emergency_question(subject, chapter, index, topic=concept)

    async def generate_cuet_questions(self, subject: str, chapter: str, count: int = 15) -> list[Question]:
        """Remote questions first (syllabus chapters only), topped up from templates."""
        questions: list[Question] = []
        syllabus = self.syllabus(subject, chapter)
        if syllabus and self.remote is not None and self.remote.is_available:
            hint = (
                f"Use concepts: {', '.join(syllabus['concepts'])}. "
                f"Question types: {', '.join(syllabus['question_types'])}."
            )
            try:
                remote = await self.remote.generate(subject, chapter, min(count, 10), "medium", hint)
            except GenerationError as e:
                logger.warning("Remote CUET generation failed: %s", e)
                remote = []
            for q in remote:
                q.source = "cuet_ai"
                q.concept = self.rng.choice(syllabus["concepts"])
                q.question_type = self.rng.choice(syllabus["question_types"])
                questions.append(q)

        if len(questions) < count:
            questions.extend(self.generate(subject, chapter, count - len(questions)))
        return questions[:count]

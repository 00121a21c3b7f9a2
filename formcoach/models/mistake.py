"""Technique fault vocabulary with coaching copy."""

from typing import List


class Mistake:
    """
    Named technique faults.
    Each fault maps to exactly one rule in the fault rule tables.
    """
    # Squat
    CHEST_FALLING = "Chest Falling"
    KNEE_VALGUS = "Knee Valgus"
    UNSTABLE_KNEES = "Unstable Knees"
    NOT_DEEP_ENOUGH = "Not Deep Enough"

    # Push-up
    HIP_SAG = "Hip Sag"
    ELBOWS_FLARING = "Elbows Flaring"
    LOWER_CHEST_MORE = "Lower Chest More"

    # Lunge
    KNEE_OVER_TOES = "Knee Over Toes"
    INCORRECT_DEPTH = "Incorrect Depth"
    POOR_BALANCE = "Poor Balance"

    # Plank
    HIPS_TOO_HIGH = "Hips Too High"
    UNSTABLE_CORE = "Unstable Core"

    # Detection issues (not technique faults, never tallied)
    POOR_VISIBILITY = "Poor Visibility"

    @classmethod
    def all(cls) -> List[str]:
        return [
            cls.CHEST_FALLING,
            cls.KNEE_VALGUS,
            cls.UNSTABLE_KNEES,
            cls.NOT_DEEP_ENOUGH,
            cls.HIP_SAG,
            cls.ELBOWS_FLARING,
            cls.LOWER_CHEST_MORE,
            cls.KNEE_OVER_TOES,
            cls.INCORRECT_DEPTH,
            cls.POOR_BALANCE,
            cls.HIPS_TOO_HIGH,
            cls.UNSTABLE_CORE,
        ]

    @classmethod
    def get_cue(cls, mistake: str) -> str:
        """Get a short, actionable instruction for a fault."""
        cues = {
            cls.CHEST_FALLING: "Chest up, eyes forward",
            cls.KNEE_VALGUS: "Knees out, track over toes",
            cls.NOT_DEEP_ENOUGH: "Sit back deeper",
            cls.HIP_SAG: "Engage core, squeeze glutes",
            cls.UNSTABLE_KNEES: "Slow down, control movement",
            cls.KNEE_OVER_TOES: "Weight on heels, shift back",
            cls.ELBOWS_FLARING: "Elbows at 45°, tuck in",
            cls.LOWER_CHEST_MORE: "Chest closer to floor",
            cls.POOR_BALANCE: "Core tight, find center",
            cls.INCORRECT_DEPTH: "Aim for 90° angles",
            cls.HIPS_TOO_HIGH: "Lower hips to alignment",
            cls.UNSTABLE_CORE: "Brace abs, breathe steady",
        }
        return cues.get(mistake, "Focus on control")

    @classmethod
    def get_explanation(cls, mistake: str) -> str:
        """Get the educational explanation of why a fault matters."""
        explanations = {
            cls.CHEST_FALLING: (
                "Maintaining an upright chest keeps your spine neutral, distributing load safely "
                "across your back and preventing lower back strain."
            ),
            cls.KNEE_VALGUS: (
                "Knees caving inward puts dangerous stress on your ACL and meniscus. Keeping knees "
                "out protects the joint and activates your glutes properly."
            ),
            cls.NOT_DEEP_ENOUGH: (
                "Full range of motion activates more muscle fibers and builds strength through the "
                "complete movement pattern."
            ),
            cls.HIP_SAG: (
                "A sagging hip position puts excessive stress on your lower back and reduces core "
                "engagement, which can lead to lower back pain."
            ),
            cls.UNSTABLE_KNEES: (
                "Knee wobbling indicates weak stabilizer muscles. Control builds strength and "
                "prevents injury."
            ),
            cls.KNEE_OVER_TOES: (
                "When your knee travels past your toes it increases shear force on the knee joint "
                "and patellar tendon. Keep your shin vertical."
            ),
            cls.ELBOWS_FLARING: (
                "Wide elbows stress your shoulder joint and rotator cuff. A 45° angle protects "
                "your shoulders while maximizing chest and tricep activation."
            ),
            cls.LOWER_CHEST_MORE: (
                "Not lowering enough reduces the effectiveness of the exercise. Aim to get your "
                "chest close to the ground."
            ),
            cls.POOR_BALANCE: (
                "Balance issues indicate weak core stability, which every compound movement "
                "depends on."
            ),
            cls.HIPS_TOO_HIGH: (
                "High hips reduce core activation and shift work away from your abdominals. This "
                "makes the plank less effective and can strain your shoulders."
            ),
            cls.UNSTABLE_CORE: (
                "Core instability reduces movement efficiency and increases injury risk to your "
                "spine."
            ),
            cls.INCORRECT_DEPTH: (
                "Proper depth (90° angles) ensures full muscle activation and joint health. Too "
                "shallow reduces benefits, too deep can cause strain."
            ),
        }
        return explanations.get(
            mistake,
            "Proper form prevents injury and maximizes results. Focus on quality movement patterns.",
        )

    @classmethod
    def get_progressive_hint(cls, mistake: str, occurrence: int) -> str:
        """Get a hint that builds on the previous ones (1-based occurrence)."""
        hints = {
            cls.CHEST_FALLING: [
                "Try to keep your chest proud and eyes forward.",
                "Imagine pushing your chest through a doorway in front of you.",
                "Engage your upper back muscles to maintain an upright torso.",
                "Think about leading with your chest as you rise.",
            ],
            cls.KNEE_VALGUS: [
                "Push your knees outward, tracking over your toes.",
                "Think about spreading the floor apart with your feet.",
                "Engage your glutes to keep knees stable and outward.",
                "Imagine a band pulling your knees in and fight it.",
            ],
            cls.NOT_DEEP_ENOUGH: [
                "Try to sit back a bit more, like sitting into a chair.",
                "Lower until your hip crease is below your knee.",
                "Focus on controlled descent, depth comes with practice.",
                "Keep weight on your heels and sink deeper into the movement.",
            ],
            cls.HIP_SAG: [
                "Engage your core and pull your belly button toward your spine.",
                "Squeeze your glutes to lift your hips into alignment.",
                "Think about creating a straight line from head to heels.",
                "Breathe steadily and maintain core tension throughout.",
            ],
            cls.UNSTABLE_KNEES: [
                "Slow down your movement to improve control.",
                "Engage your quadriceps and focus on balance.",
                "Keep your core tight to stabilize your entire body.",
                "Try a narrower stance or adjust your foot position.",
            ],
            cls.KNEE_OVER_TOES: [
                "Shift your weight back onto your heels.",
                "Keep your shin more vertical, your knee stays behind your toes.",
                "Think about sitting back into the lunge rather than forward.",
                "Drop your back knee down instead of pushing your front knee forward.",
            ],
            cls.ELBOWS_FLARING: [
                "Keep your elbows at a 45-degree angle from your body.",
                "Imagine tucking your elbows into your sides as you descend.",
                "Keep your elbows closer to your ribs to protect your shoulders.",
                'Think "elbows back" not "elbows out" throughout the movement.',
            ],
        }
        options = hints.get(mistake, ["Focus on your form and control."])
        index = min(max(occurrence, 1) - 1, len(options) - 1)
        return options[index]

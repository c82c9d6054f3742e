"""
Default medical device knowledge graph.
"""

import logging

from .graph_store import GraphStore, edge_id_for
from .models import Node, Edge, NodeType

logger = logging.getLogger(__name__)


DEVICES = [
    ("DEV-001", "Horizon X2 Ventilator",
     "Advanced mechanical ventilator for critical care with integrated monitoring and alarm systems. Model HX2-2024."),
    ("DEV-002", "CardioSync Monitor",
     "Multi-parameter patient monitoring system for cardiac care units. Monitors ECG, SpO2, blood pressure, and temperature."),
    ("DEV-003", "InfuPro Pump",
     "Smart infusion pump with dose error reduction system for medication delivery."),
    ("DEV-004", "SurgiLite LED",
     "Surgical lighting system with adjustable intensity and shadow reduction technology."),
]

SYMPTOMS = [
    ("SYM-001", "Error Code E-203",
     "Ventilator error indicating pressure sensor malfunction or calibration issue."),
    ("SYM-002", "Alarm Continuous Beep",
     "Continuous alarm sound indicating critical patient parameter out of range."),
    ("SYM-003", "Display Flickering",
     "Screen display showing intermittent flickering or partial blackout."),
    ("SYM-004", "Flow Rate Inconsistency",
     "Infusion pump delivering inconsistent flow rates compared to programmed settings."),
    ("SYM-005", "Low Oxygen Alert",
     "SpO2 reading dropping below 90% triggering low oxygen saturation alarm."),
]

SOLUTIONS = [
    ("SOL-001", "Pressure Sensor Recalibration",
     "Step 1: Access service menu (hold Menu + Enter for 5 seconds). Step 2: Navigate to Calibration > Pressure Sensors. "
     "Step 3: Follow on-screen prompts for zero-point calibration. Step 4: Test with known pressure source."),
    ("SOL-002", "Alarm Parameter Reset",
     "Step 1: Verify patient vital signs manually. Step 2: Access alarm settings. "
     "Step 3: Adjust alarm limits based on patient baseline. Step 4: Ensure all sensors properly connected."),
    ("SOL-003", "Display Cable Check",
     "Step 1: Power down device completely. Step 2: Inspect display cable connections at both ends. "
     "Step 3: Reseat cables firmly. Step 4: Check for physical damage to cables. Step 5: Power on and test."),
    ("SOL-004", "Pump Tubing Inspection",
     "Step 1: Stop infusion safely. Step 2: Check tubing for kinks, air bubbles, or obstruction. "
     "Step 3: Verify tubing properly seated in pump mechanism. Step 4: Replace tubing if damaged. Step 5: Prime tubing and restart."),
    ("SOL-005", "Sensor Position Verification",
     "Step 1: Check SpO2 sensor placement on finger/toe. Step 2: Ensure adequate perfusion at site. "
     "Step 3: Clean sensor and application site. Step 4: Reposition sensor if needed. Step 5: Verify with alternate measurement."),
]

REGULATIONS = [
    ("REG-001", "FDA 21 CFR 820.72",
     "Quality System Regulation requiring inspection, measuring, and test equipment to be calibrated at specified intervals."),
    ("REG-002", "IEC 60601-1-8 Alarm Standard",
     "Medical electrical equipment alarm systems standard specifying requirements for alarm signals and indicators."),
]

PROCEDURES = [
    ("PROC-001", "Daily Safety Check",
     "Mandatory daily verification of critical device functions: alarm systems, backup battery, sensor accuracy, display functionality."),
    ("PROC-002", "Quarterly Calibration",
     "Required quarterly calibration of all sensors and measurement systems per manufacturer specifications and regulatory requirements."),
]

# (source, target, relationship, weight)
RELATIONSHIPS = [
    # Horizon X2 Ventilator
    ("DEV-001", "SYM-001", "exhibits", 0.95),
    ("SYM-001", "SOL-001", "solved_by", 0.90),
    ("SOL-001", "REG-001", "requires", 0.85),
    ("DEV-001", "PROC-001", "requires", 0.95),
    ("DEV-001", "PROC-002", "requires", 0.90),

    # CardioSync Monitor
    ("DEV-002", "SYM-002", "exhibits", 0.85),
    ("DEV-002", "SYM-003", "exhibits", 0.75),
    ("DEV-002", "SYM-005", "exhibits", 0.80),
    ("SYM-002", "SOL-002", "solved_by", 0.88),
    ("SYM-003", "SOL-003", "solved_by", 0.85),
    ("SYM-005", "SOL-005", "solved_by", 0.92),
    ("SOL-002", "REG-002", "requires", 0.90),

    # InfuPro Pump
    ("DEV-003", "SYM-004", "exhibits", 0.88),
    ("SYM-004", "SOL-004", "solved_by", 0.91),
    ("DEV-003", "PROC-002", "requires", 0.93),

    # Cross-device
    ("SYM-001", "SYM-002", "related_to", 0.60),
    ("SOL-001", "PROC-002", "requires", 0.88),
    ("REG-001", "PROC-002", "mandates", 0.95),
]


def default_nodes():
    groups = [
        (NodeType.DEVICE, DEVICES),
        (NodeType.SYMPTOM, SYMPTOMS),
        (NodeType.SOLUTION, SOLUTIONS),
        (NodeType.REGULATION, REGULATIONS),
        (NodeType.PROCEDURE, PROCEDURES),
    ]
    return [
        Node(id=node_id, type=node_type, label=label, content=content)
        for node_type, rows in groups
        for node_id, label, content in rows
    ]


def default_edges():
    return [
        Edge(
            id=edge_id_for(source, target),
            source_id=source,
            target_id=target,
            relationship_type=relationship,
            weight=weight,
        )
        for source, target, relationship, weight in RELATIONSHIPS
    ]


def seed_graph(store: GraphStore, force: bool = False) -> bool:
    """
    Load the default medical device graph into a store.

    Returns False without touching the store when it already holds nodes,
    unless force is set, in which case the store is cleared first.
    """
    if store.get_all_nodes() and not force:
        logger.info("Graph store already populated, skipping seed")
        return False

    if force:
        store.clear()

    for node in default_nodes():
        store.add_node(node, save=False)
    for edge in default_edges():
        store.add_edge(edge, save=False)
    store.save()

    logger.info(f"Seeded knowledge graph with {len(store.nodes)} nodes and {len(store.edges)} edges")
    return True

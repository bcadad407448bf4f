"""
LangGraph Studio compatible graph definition.
"""

# Import necessary modules
import sys
from pathlib import Path

# Add lumo to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from lumo.flows.conversation_flow import build_studio_graph

graph = build_studio_graph()
print("✅ Built Lumo turn pipeline graph for LangGraph Studio")

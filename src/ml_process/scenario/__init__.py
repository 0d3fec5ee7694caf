"""Scenario description compiler."""

from ml_process.scenario.compiler import CompiledScenario, ScenarioCompiler, compile_scenario

__all__ = ["CompiledScenario", "ScenarioCompiler", "compile_scenario"]

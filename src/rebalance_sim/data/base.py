"""
Abstract base class for simulation data sources.

Defines the interface that supplies securities with their quote and dividend
history, model portfolios, initial portfolios and simulation parameters,
enabling pluggable storage formats.
"""

from abc import ABC, abstractmethod

from rebalance_sim.models import (
    ModelPortfolio,
    Portfolio,
    Security,
    SimulationParameters,
)


class DataSource(ABC):
    """
    Abstract base class for simulation inputs.

    Implementations must provide methods to fetch:
    - The security catalog with quote and dividend series
    - Model portfolios and initial portfolios by identifier
    - Simulation parameter sets
    """

    @abstractmethod
    def get_securities(self) -> dict[str, Security]:
        """
        Load the security catalog.

        Returns:
            Dictionary mapping ticker to Security
        """
        pass

    @abstractmethod
    def get_model_portfolio(self, model_portfolio_id: str) -> ModelPortfolio:
        """
        Load a model portfolio.

        Args:
            model_portfolio_id: Model portfolio identifier

        Returns:
            ModelPortfolio referencing catalog securities
        """
        pass

    @abstractmethod
    def get_portfolio(self, portfolio_id: str) -> Portfolio:
        """
        Load an initial portfolio.

        Args:
            portfolio_id: Portfolio identifier

        Returns:
            A fresh Portfolio each call, so callers may mutate it freely
        """
        pass

    @abstractmethod
    def get_simulation_parameters(self) -> list[SimulationParameters]:
        """
        Load every configured simulation.

        Returns:
            SimulationParameters in file order
        """
        pass

    def get_simulation(self, simulation_id: str) -> SimulationParameters:
        """
        Get the parameters of one simulation.

        Args:
            simulation_id: Simulation identifier

        Returns:
            SimulationParameters for the simulation

        Raises:
            KeyError: If no simulation has that identifier
        """
        for parameters in self.get_simulation_parameters():
            if parameters.simulation_id == simulation_id:
                return parameters
        raise KeyError(simulation_id)

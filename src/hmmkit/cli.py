"""CLI entry point for hmmkit.

Works on discrete HMMs described by two CSV files:
  transition: N x N, column j = P(next state | current state j)
  emission:   N x K, row i = P(symbol | state i)
"""

import logging
from pathlib import Path

import click


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


def _load_model(transition_path: str, emission_path: str):
    """Build a discrete HMM from transition and emission CSV files."""
    from hmmkit.emissions.discrete import DiscreteDistribution
    from hmmkit.hmm.model import HMM
    from hmmkit.io.reader import load_matrix

    transition = load_matrix(Path(transition_path))
    emission = load_matrix(Path(emission_path))
    return HMM(transition, [DiscreteDistribution(row) for row in emission])


def _random_model(n_states: int, n_symbols: int, seed: int):
    """Uniform transitions and randomly perturbed emissions (breaks EM symmetry)."""
    import jax

    from hmmkit.emissions.discrete import DiscreteDistribution
    from hmmkit.hmm.model import HMM

    hmm = HMM.from_prototype(n_states, DiscreteDistribution.uniform(n_symbols))
    keys = jax.random.split(jax.random.PRNGKey(seed), n_states)
    for emission, key in zip(hmm.emissions, keys):
        emission.probabilities = jax.random.uniform(key, (n_symbols,), minval=0.1, maxval=1.0)
    return hmm


@click.group()
def main():
    """hmmkit: Hidden Markov Model toolkit."""
    pass


@main.command()
@click.option("--transition", type=click.Path(exists=True), required=True,
              help="N x N column-stochastic transition matrix (CSV).")
@click.option("--emission", type=click.Path(exists=True), required=True,
              help="N x K emission matrix, one row per state (CSV).")
@click.option("--observations", type=click.Path(exists=True), required=True,
              help="Observation sequence (CSV).")
@click.option("--output", type=click.Path(), default=None,
              help="Write the state sequence here instead of stdout.")
@click.option("--verbose", is_flag=True, help="Debug logging.")
def predict(transition, emission, observations, output, verbose):
    """Viterbi-decode the most likely hidden states."""
    from hmmkit.io.reader import load_sequence
    from hmmkit.io.writer import save_sequence

    _setup_logging(verbose)
    try:
        hmm = _load_model(transition, emission)
        states = hmm.predict(load_sequence(Path(observations)))
    except (ValueError, OSError) as e:
        raise click.ClickException(str(e))

    if output:
        save_sequence(Path(output), states)
        print(f"Wrote {states.shape[0]} states to {output}")
    else:
        print(",".join(str(int(s)) for s in states))


@main.command()
@click.option("--transition", type=click.Path(exists=True), required=True,
              help="N x N column-stochastic transition matrix (CSV).")
@click.option("--emission", type=click.Path(exists=True), required=True,
              help="N x K emission matrix, one row per state (CSV).")
@click.option("--observations", type=click.Path(exists=True), required=True,
              help="Observation sequence (CSV).")
@click.option("--verbose", is_flag=True, help="Debug logging.")
def loglik(transition, emission, observations, verbose):
    """Print the log-likelihood of an observation sequence."""
    from hmmkit.io.reader import load_sequence

    _setup_logging(verbose)
    try:
        hmm = _load_model(transition, emission)
        ll = hmm.log_likelihood(load_sequence(Path(observations)))
    except (ValueError, OSError) as e:
        raise click.ClickException(str(e))
    print(f"{ll:.10f}")


@main.command()
@click.option("--transition", type=click.Path(exists=True), required=True,
              help="N x N column-stochastic transition matrix (CSV).")
@click.option("--emission", type=click.Path(exists=True), required=True,
              help="N x K emission matrix, one row per state (CSV).")
@click.option("--length", type=click.IntRange(min=1), required=True, help="Sequence length.")
@click.option("--seed", type=int, default=0, help="PRNG seed.")
@click.option("--start-state", type=int, default=None,
              help="First hidden state (default: uniform random).")
@click.option("--output-observations", type=click.Path(), required=True,
              help="Where to write the observation sequence.")
@click.option("--output-states", type=click.Path(), required=True,
              help="Where to write the hidden-state sequence.")
@click.option("--verbose", is_flag=True, help="Debug logging.")
def generate(transition, emission, length, seed, start_state,
             output_observations, output_states, verbose):
    """Sample a sequence from the model."""
    import jax

    from hmmkit.io.writer import save_sequence

    _setup_logging(verbose)
    try:
        hmm = _load_model(transition, emission)
        result = hmm.generate(length, jax.random.PRNGKey(seed), start_state=start_state)
    except (ValueError, OSError) as e:
        raise click.ClickException(str(e))

    save_sequence(Path(output_observations), result.observations)
    save_sequence(Path(output_states), result.states)
    print(f"Generated {length} steps")


@main.command()
@click.option("--observations", type=click.Path(exists=True), required=True, multiple=True,
              help="Observation sequence (CSV); repeat for several sequences.")
@click.option("--labels", type=click.Path(exists=True), multiple=True,
              help="State sequence per observation file; enables labeled training.")
@click.option("--transition", type=click.Path(exists=True), default=None,
              help="Initial transition matrix (CSV).")
@click.option("--emission", type=click.Path(exists=True), default=None,
              help="Initial emission matrix (CSV).")
@click.option("--n-states", type=int, default=None,
              help="Number of states when no initial model is given.")
@click.option("--n-symbols", type=int, default=None,
              help="Alphabet size when no initial model is given.")
@click.option("--seed", type=int, default=0, help="Seed for the random initial emissions.")
@click.option("--max-iter", type=click.IntRange(min=1), default=1000, help="Max EM iterations.")
@click.option("--tol", type=click.FloatRange(min=0.0), default=1e-5, help="EM log-likelihood tolerance.")
@click.option("--workers", type=click.IntRange(min=1), default=1, help="Threads for the E-step.")
@click.option("--output-transition", type=click.Path(), required=True,
              help="Where to write the trained transition matrix.")
@click.option("--output-emission", type=click.Path(), required=True,
              help="Where to write the trained emission matrix.")
@click.option("--verbose", is_flag=True, help="Debug logging.")
def train(observations, labels, transition, emission, n_states, n_symbols, seed,
          max_iter, tol, workers, output_transition, output_emission, verbose):
    """Train a discrete HMM (Baum-Welch, or counting when labels are given)."""
    import jax.numpy as jnp

    from hmmkit.config import EMConfig
    from hmmkit.io.reader import load_sequence
    from hmmkit.io.writer import save_matrix

    _setup_logging(verbose)

    if not (transition and emission) and not (n_states and n_symbols):
        raise click.UsageError(
            "Give either --transition and --emission, or --n-states and --n-symbols."
        )

    if labels and len(labels) != len(observations):
        raise click.UsageError(
            f"{len(labels)} --labels files for {len(observations)} --observations files"
        )

    try:
        sequences = [load_sequence(Path(p)) for p in observations]
        if transition and emission:
            hmm = _load_model(transition, emission)
        else:
            hmm = _random_model(n_states, n_symbols, seed)

        if labels:
            hmm.train_labeled(sequences, [load_sequence(Path(p)) for p in labels])
        else:
            result = hmm.train_unlabeled(
                sequences, EMConfig(max_iter=max_iter, tol=tol, n_workers=workers),
            )
            status = "converged" if result.converged else "did not converge"
            print(f"EM {status} after {result.n_iter} iterations, "
                  f"log-likelihood {float(result.log_likelihoods[-1]):.6f}")
    except (ValueError, OSError) as e:
        raise click.ClickException(str(e))

    save_matrix(Path(output_transition), hmm.transition)
    save_matrix(Path(output_emission), jnp.stack([d.probabilities for d in hmm.emissions]))
    print(f"Wrote {output_transition} and {output_emission}")


if __name__ == "__main__":
    main()

from __future__ import annotations

import argparse
import csv
import json
import sys
import time
from pathlib import Path
from statistics import mean, pstdev

SOLVERS = ["sgd", "adam", "lbfgs"]


def _fmt_mu_sigma(vals):
    mu = mean(vals)
    sd = pstdev(vals) if len(vals) > 1 else 0.0
    return f"{mu:.4f} ± {sd:.4f}"


def _run_one(solver: str, seed: int, max_iter: int, hidden: int):
    from mlpengine.data.synthetic import make_blobs
    from mlpengine.models import MLPClassifier

    X, y = make_blobs(240, n_classes=3, seed=seed)
    X_train, y_train, X_test, y_test = X[:180], y[:180], X[180:], y[180:]
    clf = MLPClassifier(
        hidden_layer_sizes=(hidden,),
        solver=solver,
        learning_rate_init=0.01 if solver == "adam" else 0.05,
        max_iter=max_iter,
        random_state=seed,
    )
    start = time.perf_counter()
    clf.fit(X_train, y_train)
    elapsed = time.perf_counter() - start
    return {
        "final_loss": float(clf.loss_),
        "final_acc": clf.score(X_test, y_test),
        "n_iter": clf.n_iter_,
        "seconds": elapsed,
    }


def main():
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))

    ap = argparse.ArgumentParser()
    ap.add_argument("--seeds", nargs="+", type=int, default=[123, 124, 125])
    ap.add_argument("--max-iter", type=int, default=50)
    ap.add_argument("--hidden", type=int, default=16)
    ap.add_argument("--out", type=str, default=".artifacts/bench")
    args = ap.parse_args()

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)
    runs = []
    for solver in SOLVERS:
        for s in args.seeds:
            r = _run_one(solver, seed=s, max_iter=args.max_iter, hidden=args.hidden)
            runs.append({"solver": solver, "seed": s, **r})
    (out / "results.jsonl").write_text(
        "\n".join(json.dumps(x) for x in runs), encoding="utf-8"
    )

    agg = {}
    for solver in SOLVERS:
        picked = [r for r in runs if r["solver"] == solver]
        accs = [r["final_acc"] for r in picked]
        losses = [r["final_loss"] for r in picked]
        agg[solver] = {
            "n": len(picked),
            "final_acc_mu": mean(accs),
            "final_acc_sd": pstdev(accs) if len(accs) > 1 else 0.0,
            "final_loss_mu": mean(losses),
            "final_loss_sd": pstdev(losses) if len(losses) > 1 else 0.0,
            "seconds_mu": mean(r["seconds"] for r in picked),
        }

    csv_path = out / "bench_micro.csv"
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(
            [
                "solver",
                "seeds",
                "max_iter",
                "final_loss_mu",
                "final_loss_sd",
                "final_acc_mu",
                "final_acc_sd",
                "seconds_mu",
            ]
        )
        for solver in SOLVERS:
            a = agg[solver]
            w.writerow(
                [
                    solver,
                    a["n"],
                    args.max_iter,
                    f"{a['final_loss_mu']:.4f}",
                    f"{a['final_loss_sd']:.4f}",
                    f"{a['final_acc_mu']:.4f}",
                    f"{a['final_acc_sd']:.4f}",
                    f"{a['seconds_mu']:.4f}",
                ]
            )

    md_path = out / "bench_micro.md"
    lines = ["### Micro-Benchmark: SGD vs Adam vs L-BFGS on blobs", ""]
    lines.append(
        f"- Seeds: `{args.seeds}`; Max iter: `{args.max_iter}`; Hidden: `{args.hidden}`"
    )
    lines.append("")
    lines.append("| Solver | Final Loss (μ±σ) | Test Acc (μ±σ) | Seconds | Seeds |")
    lines.append("|---|---:|---:|---:|---:|")
    for solver in SOLVERS:
        picked = [r for r in runs if r["solver"] == solver]
        lines.append(
            f"| {solver.upper()} | {_fmt_mu_sigma([r['final_loss'] for r in picked])} | "
            f"{_fmt_mu_sigma([r['final_acc'] for r in picked])} | "
            f"{agg[solver]['seconds_mu']:.3f} | {agg[solver]['n']} |"
        )
    md_path.write_text("\n".join(lines), encoding="utf-8")
    print("Wrote:", csv_path, md_path)


if __name__ == "__main__":
    main()

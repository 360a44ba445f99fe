"""End-to-end runs of the full experiment on synthetic survey data."""

import pytest

from eelboost.pipeline import run_pipeline


@pytest.fixture
def run(eel_csvs, small_stages, fast_config):
    model_path, eval_path = eel_csvs

    def _run(**kwargs):
        options = dict(stages=small_stages, base_config=fast_config, k=3, seed=11,
                       models_dir=None, reports_dir=None)
        options.update(kwargs)
        return run_pipeline(model_path, eval_path, **options)

    return _run


def test_pipeline_is_deterministic(run):
    first = run()
    second = run()

    assert first['tuning'].final_config == second['tuning'].final_config
    for key in first['reports']:
        assert first['reports'][key]['confusion'] == second['reports'][key]['confusion']
    for a, b in zip(first['tuning'].stages, second['tuning'].stages):
        assert a.best == b.best
        assert a.best_score == b.best_score


def test_pipeline_outputs(run, tmp_path):
    result = run(models_dir=tmp_path / "models", reports_dir=tmp_path / "reports")

    reports = result['reports']
    assert set(reports) == {'test_split', 'external', 'evaluation'}
    assert sum(reports['test_split']['confusion'].values()) == len(result['data']['test']) == 100
    assert sum(reports['external']['confusion'].values()) == 200
    assert sum(reports['evaluation']['confusion'].values()) == 200

    assert set(result['manager'].models) == {'test_split', 'evaluation'}
    assert list(result['importance'].columns) == ['Feature', 'test_split', 'evaluation']

    final = result['tuning'].final_config
    assert final.n_estimators == 25
    assert final.learning_rate is not None and final.mtry is not None

    models = tmp_path / "models"
    for name in ('tuning_stage_a.pkl', 'tuning_stage_b.pkl', 'tuning_stage_c.pkl',
                 'final_model_test_split.pkl', 'final_model_evaluation.pkl'):
        assert (models / name).exists()

    reports_dir = tmp_path / "reports"
    for name in ('evaluation_comparison.csv', 'feature_importance.csv', 'tuning_stage_a.csv',
                 'plot_confusion_test_split.png', 'plot_importance_comparison.png',
                 'plot_tuning_stage_c.png'):
        assert (reports_dir / name).exists()


def test_pipeline_resumes_from_stage_artifacts(run, tmp_path):
    first = run(models_dir=tmp_path)
    second = run(models_dir=tmp_path, resume=True)
    assert second['tuning'].final_config == first['tuning'].final_config

from . import utils as utils
from ._augmented_lagrangian import AugLagOptiModel as AugLagOptiModel
from ._augmented_lagrangian import AugLagParams as AugLagParams
from ._autodiff import AutodiffOptiModel as AutodiffOptiModel
from ._feasibility import FeasibilityConfig as FeasibilityConfig
from ._feasibility import FeasOptiModel as FeasOptiModel
from ._meta import ModelMeta as ModelMeta
from ._model import OptiModel as OptiModel
from ._model import WrapperModel as WrapperModel
from ._nlp import NlpBackend as NlpBackend
from ._nlp import NlpOptiModel as NlpOptiModel
from ._output import STATUSES as STATUSES
from ._output import OptiOutput as OptiOutput
from ._prox import ProxOptiModel as ProxOptiModel
from ._slack import SlackOptiModel as SlackOptiModel
from .utils import DimensionMismatch as DimensionMismatch

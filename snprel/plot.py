import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns


def plot_pairwise_counts(result, colors=("#2171b5", "#deebf7"), plot_file=None):
    '''Plot the distribution of pairwise counts of pedigree inconsistent loci: a boxplot above a histogram with the outlier cutoff as a red line.

    Args:
        | result (ParentOffspringResult): output of ParentOffspringFilter.filter.
        | colors (tuple of strs): border and fill colours.
        | plot_file (str): if given, the figure is saved to this path.

    Returns:
        fig (matplotlib.figure.Figure)
    '''

    count_arr = result.count_df.values[~np.isnan(result.count_df.values)]
    fig, (box_ax, hist_ax) = plt.subplots(nrows=2, sharex=True, figsize=(8, 6), gridspec_kw={"height_ratios": [1, 4]})
    box_ax.boxplot(count_arr, vert=False, whis=1.5, patch_artist=True,
                   boxprops={"facecolor": colors[1], "edgecolor": colors[0]}, medianprops={"color": colors[0]})
    box_ax.set_yticks([])
    box_ax.set_title("SNP data\nCounts of pedigree incompatible loci per pair")
    hist_ax.hist(count_arr, bins=50, color=colors[1], edgecolor=colors[0])
    if np.isfinite(result.cutoff):
        hist_ax.axvline(result.cutoff, color="red", linewidth=1)
    hist_ax.set_xlabel("No. Pedigree incompatible")
    hist_ax.set_ylabel("Count")
    fig.tight_layout()
    if plot_file is not None:
        fig.savefig(plot_file)
    return fig


def plot_relatedness_heatmap(rel_df, cmap="RdBu_r", plot_file=None):
    '''Heatmap of a square matrix of pairwise relatedness.

    Args:
        | rel_df (DataFrame): index and columns are the individual IDs.
        | cmap (str): colour map.
        | plot_file (str): if given, the figure is saved to this path.

    Returns:
        fig (matplotlib.figure.Figure)
    '''

    fig, ax = plt.subplots(figsize=(8, 7))
    sns.heatmap(rel_df.astype(float), cmap=cmap, square=True, ax=ax, cbar_kws={"label": "Relatedness"})
    ax.set_xlabel("")
    ax.set_ylabel("")
    fig.tight_layout()
    if plot_file is not None:
        fig.savefig(plot_file)
    return fig
